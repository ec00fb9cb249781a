import os
import logging
from typing import Callable, Dict, List, Optional, Union

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from openai import OpenAI
from pydantic import BaseModel

from tutorial_core import (
    CHAT_MODEL,
    MAX_STEPS,
    RETRIEVAL_STRATEGY,
    SNIPPET_CHARS,
    TutorialContext,
    ask,
    get_client,
    load_tutorial_context,
)

logger = logging.getLogger(__name__)

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.environ.get("ALLOWED_ORIGINS", "https://dataforyourbeta.com").split(",")
    if o.strip()
]

# Loaded once at start-up, read-only afterwards
TUTORIAL_CONTEXT = load_tutorial_context()

# Create FastAPI app with docs exposed under /api
app = FastAPI(
    title="Tutorial Chatbot API",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


class Turn(BaseModel):
    role: str
    content: str


class StepContextIn(BaseModel):
    stepNumber: Optional[Union[int, str]] = None
    stepCaption: Optional[str] = None


class ChatIn(BaseModel):
    question: Optional[str] = None
    history: Optional[List[Turn]] = None
    stepContext: Optional[StepContextIn] = None


def get_tutorial_context() -> TutorialContext:
    return TUTORIAL_CONTEXT


def get_llm_client_factory() -> Callable[[], OpenAI]:
    return get_client


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Chatbot backend is running."


@app.get("/api/health")
def health():
    return {"ok": True}


@app.get("/api/stats")
def stats(context: TutorialContext = Depends(get_tutorial_context)):
    return {
        "model": CHAT_MODEL,
        "strategy": RETRIEVAL_STRATEGY,
        "max_steps": MAX_STEPS,
        "snippet_chars": SNIPPET_CHARS,
        "steps_loaded": len(context.steps),
        "transcript_chars": len(context.transcript),
    }


@app.get("/api/transcript")
def transcript(context: TutorialContext = Depends(get_tutorial_context)):
    return {"transcript": context.transcript}


@app.post("/api/chat")
def chat(
    body: ChatIn,
    context: TutorialContext = Depends(get_tutorial_context),
    make_client: Callable[[], OpenAI] = Depends(get_llm_client_factory),
):
    if not body.question:
        return JSONResponse(status_code=400, content={"error": "No question provided"})

    history: List[Dict[str, str]] = [t.model_dump() for t in body.history or []]
    step_context = body.stepContext.model_dump() if body.stepContext else None

    try:
        result = ask(
            body.question,
            context,
            openai_client=make_client(),
            history=history,
            step_context=step_context,
        )
    except Exception as err:
        logger.exception("OpenAI API error")
        return JSONResponse(
            status_code=500,
            content={"error": "AI backend error: " + (str(err) or "Unknown error")},
        )

    return {"answer": result["answer"]}
