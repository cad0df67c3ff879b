"""
Pytest fixtures: stores rooted in tmp_path and a client wired to them.
"""
import pytest
from fastapi.testclient import TestClient

from app import app
from media import MediaStore, get_media_store
from storage import PostStore, get_post_store


@pytest.fixture
def post_store(tmp_path):
    store = PostStore(f"sqlite:///{tmp_path / 'posts.db'}")
    yield store
    store.close()


@pytest.fixture
def media_store(tmp_path):
    return MediaStore(tmp_path / "uploads")


@pytest.fixture
def client(post_store, media_store):
    app.dependency_overrides[get_post_store] = lambda: post_store
    app.dependency_overrides[get_media_store] = lambda: media_store
    yield TestClient(app)
    app.dependency_overrides.clear()
