"""Pytest configuration and fixtures."""

import os
from typing import Callable

import httpx
import pytest

# Set test environment variables before importing app modules
os.environ["GEMINI_API_KEY"] = "test-key"
os.environ.setdefault("LOG_LEVEL", "debug")

from promptforge.schemas import AnalysisResult, SourceFile  # noqa: E402


@pytest.fixture
def analysis() -> AnalysisResult:
    """A representative analysis as returned by the model."""
    return AnalysisResult(
        role="Senior Python Developer",
        language_framework="Python with FastAPI",
        main_objective="a small counter service",
        technical_purpose="exposing state over HTTP",
        key_features=["Increment a counter", "Read the current value"],
        structure_classes=["Counter"],
        structure_functions=["increment", "read"],
        dependencies=["fastapi", "uvicorn"],
    )


@pytest.fixture
def analysis_payload() -> dict:
    """Raw camelCase JSON object matching the analysis schema."""
    return {
        "role": "Senior Python Developer",
        "languageFramework": "Python with FastAPI",
        "mainObjective": "a small counter service",
        "technicalPurpose": "exposing state over HTTP",
        "keyFeatures": ["Increment a counter", "Read the current value"],
        "structureClasses": ["Counter"],
        "structureFunctions": ["increment", "read"],
        "dependencies": ["fastapi", "uvicorn"],
    }


@pytest.fixture
def source_files() -> list[SourceFile]:
    return [
        SourceFile(path="app/main.py", content="from app.counter import Counter\n"),
        SourceFile(path="app/counter.py", content="class Counter:\n    value = 0\n"),
    ]


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an httpx.AsyncClient whose requests are answered by ``handler``."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
