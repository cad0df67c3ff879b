from typing import Iterable

from fastapi.templating import Jinja2Templates
from markupsafe import Markup

import config
from models import Post

# Jinja2Templates turns autoescape on, so every {{ }} goes through MarkupSafe
templates = Jinja2Templates(directory=str(config.TEMPLATES_DIR))
templates.env.globals["board_title"] = config.BOARD_TITLE


def render_post(post: Post) -> Markup:
    return Markup(templates.get_template("post.html").render(post=post))


def render_feed(posts: Iterable[Post]) -> Markup:
    return Markup(templates.get_template("feed.html").render(posts=list(posts)))


def render_error_page(title: str, message: str) -> str:
    return templates.get_template("error.html").render(title=title, message=message)
