"""Test configuration for ensuring package imports and shared fixtures."""

import os
import sys

import pytest

# Add the repository root (the directory containing this file) to ``sys.path``
# if it is not already present, as ``python -m pytest`` would.
ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from golf_buddies.core.models import Golfer, User  # noqa: E402
from golf_buddies.data.store import LocalBackend  # noqa: E402


def _golfer(i: int, **overrides) -> Golfer:
    data = dict(
        id=f"g{i}",
        name=f"Golfer {i}",
        age=25 + i,
        bio="Early morning rounds.",
        handicap=10.0 + i,
        experience=f"{i} years",
        typical_course="Lincoln Park",
        location="San Francisco, CA",
        photo=f"https://example.com/{i}.jpg",
        interests=["walking", "match play"],
    )
    data.update(overrides)
    return Golfer(**data)


@pytest.fixture()
def make_golfer():
    return _golfer


@pytest.fixture()
def backend(tmp_path):
    return LocalBackend(path=str(tmp_path / "data.json"))


@pytest.fixture()
def host():
    return User(id="host-1", email="host@example.com")


@pytest.fixture()
def player():
    return User(id="player-1", email="sam.player@example.com")
