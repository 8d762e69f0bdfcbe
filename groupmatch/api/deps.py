# groupmatch/api/deps.py
from fastapi import Request

from groupmatch.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
