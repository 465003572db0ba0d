import logging
import os

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
import socketio

from app import config
from app.services import media
from app.services.broadcaster import StateBroadcaster
from app.services.room import RoomRegistry, evict_empty_rooms, keep_rooms

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI()

# CORS Configuration
origins = config.ALLOWED_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")

sio = socketio.AsyncServer(async_mode='asgi', cors_allowed_origins=origins if origins != ["*"] else "*")
socket_app = socketio.ASGIApp(sio, app)

registry = RoomRegistry(eviction_policy=evict_empty_rooms if config.ROOM_EVICT_EMPTY else keep_rooms)
broadcaster = StateBroadcaster(sio, registry)


# REST API
@app.get("/songs")
async def list_songs():
    try:
        return await media.list_tracks(config.UPLOAD_DIR)
    except OSError as e:
        logger.error(f"Failed to list songs: {e}")
        raise HTTPException(status_code=500, detail="Failed to list songs")


@app.post("/upload")
async def upload_song(song: UploadFile = File(None)):
    if song is None or not song.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    filename = await media.save_upload(config.UPLOAD_DIR, song.filename, song.file)
    return {"filename": filename}


@app.delete("/delete")
async def delete_song(song: str = None):
    if not song:
        raise HTTPException(status_code=400, detail="Song not specified")
    try:
        await media.delete_track(config.UPLOAD_DIR, song)
    except media.TrackNotFound:
        raise HTTPException(status_code=404, detail="Song not found")
    except OSError as e:
        logger.error(f"Delete error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete song")
    return {"success": True}


@app.get("/api/room/{room_id}")
async def check_room(room_id: str):
    room = registry.get(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    return {"state": room.state.to_wire(), "members": len(room.members)}


# Socket Events
@sio.event
async def connect(sid, environ):
    logger.info(f"Client {sid} connected")


@sio.event
async def disconnect(sid):
    try:
        logger.info(f"Client {sid} disconnected")
        broadcaster.leave(sid)
    except Exception as e:
        logger.error(f"Error in disconnect: {e}", exc_info=True)


@sio.on("join-room")
async def join_room(sid, room_id=None, user_id=None):
    try:
        if isinstance(room_id, dict):
            room_id, user_id = room_id.get("roomId"), room_id.get("userId")

        if not isinstance(room_id, str) or not room_id.strip():
            logger.warning(f"Rejecting join from {sid} without a room id")
            await sio.emit("error", {"message": "Room id is required"}, to=sid)
            return

        await broadcaster.join(sid, room_id.strip(), user_id)
    except Exception as e:
        logger.error(f"Error in join_room: {e}", exc_info=True)
        await sio.emit("error", {"message": "Internal server error during join"}, to=sid)


@sio.on("control")
async def control(sid, data):
    try:
        await broadcaster.control(sid, data)
    except Exception as e:
        logger.error(f"Error in control: {e}", exc_info=True)
