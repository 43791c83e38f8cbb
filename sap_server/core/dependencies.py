"""
SAP Server — Request Dependencies
Hands route handlers the stores created during application startup.
"""
from fastapi import Request

from sap_server.services.aggregate import AggregateStore
from sap_server.services.repository import StatsRepository


def get_aggregate_store(request: Request) -> AggregateStore:
    return request.app.state.aggregate_store


def get_repository(request: Request) -> StatsRepository:
    return request.app.state.repository
