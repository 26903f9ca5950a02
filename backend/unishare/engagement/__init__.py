"""Engagement domain: likes, comments, follows, study groups and invitations."""
