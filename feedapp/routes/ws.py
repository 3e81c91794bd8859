from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()


@router.websocket('/posts')
async def posts_ws(websocket: WebSocket):
    manager = websocket.app.state.publisher.manager
    await manager.connect(websocket)
    try:
        while True:
            # listeners only receive; inbound frames are ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
