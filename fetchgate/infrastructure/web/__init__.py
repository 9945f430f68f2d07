"""HTTP endpoint layer (FastAPI) exposing FetchOrchestrator.resolve."""
