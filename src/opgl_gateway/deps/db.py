from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from opgl_gateway.config import Settings


def build_engine(settings: Settings) -> Engine:
    url = settings.sqlalchemy_url
    connect_args = {}
    if url.startswith("sqlite"):
        # request threads share the pool
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False, class_=Session)


def get_engine(request: Request) -> Engine:
    return request.app.state.engine
