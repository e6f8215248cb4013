"""
Tests for the knowledge ingestion helper script.
"""

import importlib.util
import json
import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch


SCRIPT = Path(__file__).parent.parent / "scripts" / "ingest_knowledge.py"


@pytest.fixture
def ingest_module():
    spec = importlib.util.spec_from_file_location("ingest_knowledge", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def knowledge_file(tmp_path):
    path = tmp_path / "sample-knowledge.json"
    path.write_text(json.dumps({"documents": [
        {"id": "qdrant", "text": "Qdrant is a vector database", "metadata": {"topic": "db"}},
    ]}), encoding="utf-8")
    return path


def test_ingest_posts_file_contents(ingest_module, knowledge_file):
    response = MagicMock(ok=True)
    response.json.return_value = {"success": True, "count": 1}

    with patch.object(ingest_module.requests, "post", return_value=response) as mock_post:
        result = ingest_module.ingest(knowledge_file, "http://localhost:3000/api/", token="jwt")

    assert result == {"success": True, "count": 1}
    url = mock_post.call_args.args[0]
    kwargs = mock_post.call_args.kwargs
    assert url == "http://localhost:3000/api/ingest"
    assert kwargs["json"]["documents"][0]["id"] == "qdrant"
    assert kwargs["headers"]["Authorization"] == "Bearer jwt"


def test_ingest_failure_raises(ingest_module, knowledge_file):
    response = MagicMock(ok=False, status_code=500)
    response.json.return_value = {"error": "Ingestion failed", "message": "qdrant unreachable"}

    with patch.object(ingest_module.requests, "post", return_value=response):
        with pytest.raises(RuntimeError, match="qdrant unreachable"):
            ingest_module.ingest(knowledge_file, "http://localhost:3000/api")
