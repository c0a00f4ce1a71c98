"""FastAPI backend for Gymna: credits, chats and AI plan generation."""
import logging
import os
from functools import lru_cache
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from gymna_backend.database import get_db
from gymna_backend.modules import conversation_store, credit_ledger, orchestrator, plan_store
from gymna_backend.modules.errors import GymnaError, Unauthorized
from gymna_backend.modules.gymna_bot import GymnaBot
from gymna_backend.modules.plan_parser import DialogueResponse

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

app = FastAPI(title="Gymna")

allowed_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GymnaError)
async def gymna_error_handler(request: Request, exc: GymnaError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# =====================================================================
# DEPENDENCIES
# =====================================================================

@lru_cache(maxsize=1)
def get_bot():
    return GymnaBot()


def get_current_user_id(authorization: Optional[str] = Header(None), db=Depends(get_db)):
    """Resolve the Supabase access token in the Authorization header to a user id."""
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized()

    token = authorization.split(" ", 1)[1]
    try:
        user_response = db.auth.get_user(token)
    except Exception as e:
        logger.warning("Authentication error: %s", e)
        raise Unauthorized() from e

    user = getattr(user_response, "user", None)
    if user is None:
        raise Unauthorized()
    return user.id


# =====================================================================
# REQUEST MODELS
# =====================================================================

class CreateChatRequest(BaseModel):
    title: str = Field("New Conversation", min_length=1)


class SendMessageRequest(BaseModel):
    chat_id: Optional[str] = None
    content: str = Field(..., min_length=1)


class PlanRequest(BaseModel):
    chat_id: Optional[str] = None
    plan_type: Literal["diet", "workout"]
    responses: List[DialogueResponse]


# =====================================================================
# ROUTES
# =====================================================================

# Routes are sync so the blocking Supabase and Gemini calls run in the
# threadpool. A client disconnect cannot interrupt generation between the
# debit and the refund.

@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/gymna/credits")
def get_user_credits(user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    return {"credits": credit_ledger.get_balance(db, user_id)}


@app.get("/api/gymna/chats")
def get_chats(user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    return conversation_store.list_chats(db, user_id)


@app.post("/api/gymna/chats", status_code=201)
def create_chat(request: CreateChatRequest, user_id: str = Depends(get_current_user_id),
                db=Depends(get_db)):
    return conversation_store.create_chat(db, user_id, request.title)


@app.delete("/api/gymna/chats/{chat_id}")
def delete_chat(chat_id: str, user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    conversation_store.delete_chat(db, chat_id, user_id)
    return {"status": "success"}


@app.get("/api/gymna/chats/{chat_id}/messages")
def get_chat_messages(chat_id: str, user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    conversation_store.get_chat(db, chat_id, user_id)
    return conversation_store.list_messages(db, chat_id)


@app.get("/api/gymna/chats/{chat_id}/plans")
def get_plan_data(chat_id: str, user_id: str = Depends(get_current_user_id), db=Depends(get_db)):
    conversation_store.get_chat(db, chat_id, user_id)
    return plan_store.list_plans(db, chat_id)


@app.post("/api/gymna/messages")
def send_message(request: SendMessageRequest, user_id: str = Depends(get_current_user_id),
                 db=Depends(get_db), bot=Depends(get_bot)):
    return orchestrator.send_message(db, bot, user_id, request.chat_id, request.content)


@app.post("/api/gymna/plans")
def send_dialogue_message(request: PlanRequest, user_id: str = Depends(get_current_user_id),
                          db=Depends(get_db), bot=Depends(get_bot)):
    return orchestrator.send_dialogue_message(
        db, bot, user_id, request.chat_id, request.plan_type, request.responses
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gymna_backend.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
