# commissionguard/routers/board.py
import json

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, JSONResponse

from commissionguard.board import TicketBoard
from commissionguard.components import render_blocked, render_board, render_message, render_page
from commissionguard.dependencies import get_current_session, new_identity
from commissionguard.identity import Session
from commissionguard.logger import setup_logger

logger = setup_logger(__name__)

router = APIRouter(tags=["Board"])


def _set_session_cookie(response, app, session: Session):
    response.set_cookie(
        app.state.settings.session_cookie,
        session.token,
        httponly=True,
        samesite="lax",
        max_age=app.state.settings.access_token_expire_minutes * 60,
    )


# -------------------------
# Page shell
# -------------------------
@router.get("/", response_class=HTMLResponse)
async def index(request: Request):
    app = request.app
    if app.state.startup_error:
        return HTMLResponse(render_page(render_blocked(app.state.startup_error), live=False), status_code=503)

    identity = new_identity(app)
    session = await identity.initialize(request.cookies.get(app.state.settings.session_cookie))
    response = HTMLResponse(render_page(render_message("Connecting to Secure Service...")))
    if session is not None:
        _set_session_cookie(response, app, session)
    return response


# -------------------------
# Session routes
# -------------------------
@router.post("/auth/anonymous")
async def sign_in_anonymously(request: Request):
    identity = new_identity(request.app)
    session = await identity.initialize()
    if session is None:
        raise HTTPException(status_code=503, detail="Authentication failed")

    response = JSONResponse({"uid": session.uid, "access_token": session.token, "token_type": "bearer"})
    _set_session_cookie(response, request.app, session)
    return response


@router.get("/auth/session")
async def read_session(session: Session = Depends(get_current_session)):
    return {"uid": session.uid, "anonymous": session.anonymous}


# -------------------------
# Live board
# -------------------------
async def handle_message(board: TicketBoard, message):
    if not isinstance(message, dict):
        logger.warning(f"Ignored board message that is not an object: {message!r}")
        return
    action = message.get("action")
    try:
        if action == "set_view":
            await board.set_view(message.get("view"))
        elif action == "update_form":
            await board.update_form(title=message.get("title"), description=message.get("description"))
        elif action == "submit":
            if "title" in message or "description" in message:
                await board.update_form(title=message.get("title"), description=message.get("description"))
            await board.submit()
        elif action == "change_status":
            await board.change_status(message.get("ticket_id"), message.get("status"))
        elif action == "request_delete":
            await board.request_delete(message.get("ticket_id"))
        elif action == "confirm_delete":
            await board.confirm_delete()
        elif action == "cancel_delete":
            await board.cancel_delete()
        else:
            logger.warning(f"Unknown board action: {action!r}")
    except ValueError as e:
        logger.warning(f"Rejected board action {action!r}: {e}")


@router.websocket("/ws")
async def board_socket(websocket: WebSocket):
    await websocket.accept()
    app = websocket.app

    async def push(board: TicketBoard):
        await websocket.send_json({"type": "render", "html": render_board(board)})

    if app.state.startup_error:
        await websocket.send_json({"type": "render", "html": render_blocked(app.state.startup_error)})
        await websocket.close()
        return

    identity = new_identity(app)
    board = TicketBoard(identity, app.state.repository)
    board.add_listener(push)
    board.start()
    try:
        await push(board)
        await identity.initialize(websocket.cookies.get(app.state.settings.session_cookie))
        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
            except ValueError as e:
                logger.warning(f"Ignored malformed board message: {e}")
                continue
            await handle_message(board, message)
    except WebSocketDisconnect:
        logger.info("Board client disconnected")
    finally:
        board.close()
        identity.close()
