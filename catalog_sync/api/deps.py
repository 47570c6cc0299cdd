"""
API Dependencies for dependency injection
"""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from catalog_sync.core.config import Settings, get_settings
from catalog_sync.core.database import db_manager, get_async_session
from catalog_sync.repositories import (
    CatalogItemRepository,
    DiscoveryRepository,
    ItemImageRepository,
    RefreshQueueRepository,
)


def get_session_factory() -> async_sessionmaker:
    return db_manager.sessionmaker


AsyncSessionDep = Annotated[AsyncSession, Depends(get_async_session)]
SessionFactoryDep = Annotated[async_sessionmaker, Depends(get_session_factory)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


async def get_item_repository(session_factory: SessionFactoryDep) -> CatalogItemRepository:
    return CatalogItemRepository(session_factory)


async def get_image_repository(session_factory: SessionFactoryDep) -> ItemImageRepository:
    return ItemImageRepository(session_factory)


async def get_queue_repository(session_factory: SessionFactoryDep) -> RefreshQueueRepository:
    return RefreshQueueRepository(session_factory)


async def get_discovery_repository(session_factory: SessionFactoryDep) -> DiscoveryRepository:
    return DiscoveryRepository(session_factory)


ItemRepoDep = Annotated[CatalogItemRepository, Depends(get_item_repository)]
ImageRepoDep = Annotated[ItemImageRepository, Depends(get_image_repository)]
QueueRepoDep = Annotated[RefreshQueueRepository, Depends(get_queue_repository)]
DiscoveryRepoDep = Annotated[DiscoveryRepository, Depends(get_discovery_repository)]
