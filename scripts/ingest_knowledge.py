#!/usr/bin/env python3
"""
Ingest a knowledge file into a running RAG relay.

The file is JSON of the form ``{"documents": [{"id": ..., "text": ..., "metadata": {...}}]}``
and is posted as-is to ``<api-url>/ingest``.
"""

import json
import os
import sys
import argparse
from pathlib import Path

import requests


def ingest(path: Path, api_url: str, token: str = None, timeout: float = 120.0) -> dict:
    knowledge = json.loads(path.read_text(encoding='utf-8'))
    documents = knowledge.get('documents') or []
    print(f"Ingesting {len(documents)} documents...")

    headers = {'Content-Type': 'application/json'}
    if token:
        headers['Authorization'] = f"Bearer {token}"

    response = requests.post(f"{api_url.rstrip('/')}/ingest", json=knowledge, headers=headers, timeout=timeout)
    if not response.ok:
        try:
            error = response.json()
        except ValueError:
            error = response.text
        raise RuntimeError(f"Ingestion failed ({response.status_code}): {error}")

    return response.json()


def main():
    parser = argparse.ArgumentParser(description='Ingest a JSON knowledge file')
    parser.add_argument('file', nargs='?', default='sample-knowledge.json',
                        help='Knowledge file (default: sample-knowledge.json)')
    parser.add_argument('--api-url', default=os.getenv('API_URL', 'http://localhost:3000/api'),
                        help='API base URL (default: $API_URL or http://localhost:3000/api)')
    parser.add_argument('--token', default=os.getenv('API_TOKEN'),
                        help='Bearer token, if the deployment sits behind auth')
    args = parser.parse_args()

    path = Path(args.file)
    if not path.exists():
        print(f"ERROR: {path} not found")
        sys.exit(1)

    try:
        result = ingest(path, args.api_url, args.token)
    except (RuntimeError, ValueError, requests.RequestException) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print("Ingestion successful!")
    print(result)


if __name__ == '__main__':
    main()
