import logging

import log_config  # noqa: F401
from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.requests import ClientDisconnect

import config
from errors import MediaWriteError, StoreError, ValidationError
from forms import MultipartReader
from ingest import submit_post
from media import KIND_DIRS, MediaStore, get_media_store
from models import MediaType
from render import render_error_page, render_feed, templates
from storage import PostStore, get_post_store

logger = logging.getLogger(__name__)


app = FastAPI()

app.mount("/static", StaticFiles(directory=config.STATIC_DIR, check_dir=False), name="static")
app.mount(
    "/uploads/images",
    StaticFiles(directory=config.UPLOAD_ROOT / KIND_DIRS[MediaType.IMAGE], check_dir=False),
    name="images",
)
app.mount(
    "/uploads/videos",
    StaticFiles(directory=config.UPLOAD_ROOT / KIND_DIRS[MediaType.VIDEO], check_dir=False),
    name="videos",
)


def error_page(title: str, message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(render_error_page(title, message), status_code=status_code)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("Rejected submission: %s", exc)
    return error_page("Bad Request", str(exc), 400)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return error_page("Internal Server Error", str(exc), 500)


@app.exception_handler(MediaWriteError)
async def media_write_error_handler(request: Request, exc: MediaWriteError):
    return error_page("Internal Server Error", str(exc), 500)


@app.exception_handler(ClientDisconnect)
async def client_disconnect_handler(request: Request, exc: ClientDisconnect):
    logger.warning("Client disconnected during %s %s", request.method, request.url.path)
    return Response(status_code=400)


@app.get("/", response_class=HTMLResponse)
def home(request: Request, posts: PostStore = Depends(get_post_store)):
    feed = render_feed(posts.list_all())
    return templates.TemplateResponse(request, "index.html", {"feed": feed})


@app.post("/post")
async def create_post(
    request: Request,
    posts: PostStore = Depends(get_post_store),
    media: MediaStore = Depends(get_media_store),
):
    reader = MultipartReader.from_request(request)
    post = await submit_post(reader.fields(), media, posts, config.MAX_FIELD_BYTES)
    logger.info("Created post %s", post.id)
    return RedirectResponse(url="/", status_code=303)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.HOST, port=config.PORT)
