"""Client-side engagement consistency protocol."""

from unishare.client.api import UniShareClient
from unishare.client.components import FollowControl, ResourceEngagement, StudyGroupEngagement
from unishare.client.results import ApiError, Err, ErrorKind, Ok

__all__ = [
	"ApiError",
	"Err",
	"ErrorKind",
	"FollowControl",
	"Ok",
	"ResourceEngagement",
	"StudyGroupEngagement",
	"UniShareClient",
]
