import uvicorn

from app import config

if __name__ == "__main__":
    uvicorn.run("app.main:socket_app", host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())
