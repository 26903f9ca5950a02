"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from unishare.api import ops
from unishare.engagement.api import router as engagement_router
from unishare.engagement.sockets import server as realtime_server
from unishare.infra import postgres
from unishare.obs import init as obs_init
from unishare.settings import settings

_DEV_ORIGINS = [
	"http://localhost:3000",
	"http://127.0.0.1:3000",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="UniShare Engagement", lifespan=lifespan)
obs_init(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else [settings.public_base_url]

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else [settings.public_base_url]

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Use the same allowed origins for Socket.IO as for the REST API
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
realtime_server.register(sio)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)

app.include_router(ops.router)
app.include_router(engagement_router)
