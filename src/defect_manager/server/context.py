"""Wiring of the long-lived collaborators shared by the routes."""

import asyncio
import logging
from dataclasses import dataclass

from defect_manager.defect.backend import CveBackendClient
from defect_manager.defect.bulletin import BulletinFormatter
from defect_manager.defect.db import create_db_engine, create_session_factory, init_db
from defect_manager.defect.obs import ObsUploader
from defect_manager.defect.producttree import RepoProductTree
from defect_manager.defect.service import DefectService
from defect_manager.defect.sql_repository import SqlDefectRepository
from defect_manager.gitee.client import GiteeClient
from defect_manager.issue.committer import CommitterCache
from defect_manager.issue.handler import EventHandler, HandlerConfig
from defect_manager.server.config import Settings


logger = logging.getLogger(__name__)

# How often the committer cache checks whether a new day has started.
COMMITTER_CHECK_INTERVAL = 3600


@dataclass
class AppContext:
    """Everything a request needs, built once per application."""

    settings: Settings
    gitee: GiteeClient
    committers: CommitterCache
    service: DefectService
    handler: EventHandler
    engine: object = None
    backend: CveBackendClient | None = None

    def close(self) -> None:
        self.gitee.close()
        if self.backend is not None:
            self.backend.close()
        if self.engine is not None:
            self.engine.dispose()


def handler_config(settings: Settings) -> HandlerConfig:
    return HandlerConfig(
        issue_type=settings.issue_type,
        maintain_version=settings.maintain_version,
        develop_version=settings.develop_version,
        source_namespace=settings.source_namespace,
        enterprise_id=settings.enterprise_id,
        enterprise_token=settings.enterprise_token,
        pkg_policy=settings.pkg_policy,
        check_committer_authority=settings.check_committer_authority,
    )


def build_context(settings: Settings) -> AppContext:
    """Create the database, clients and services described by ``settings``.

    Raises:
        GiteeClientError: If the robot account cannot be resolved
    """
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    repo = SqlDefectRepository(create_session_factory(engine))

    gitee = GiteeClient(token=settings.robot_token)
    bot = gitee.get_bot()
    logger.info(f"Robot account: {bot.login}")

    backend = CveBackendClient(settings.backend.endpoint)
    obs = ObsUploader(
        access_key=settings.obs.access_key,
        secret_key=settings.obs.secret_key,
        endpoint=settings.obs.endpoint,
        bucket=settings.obs.bucket,
        directory=settings.obs.directory,
    )
    product_tree = RepoProductTree(settings.product_tree.repo_url, settings.product_tree.arches)

    service = DefectService(repo, product_tree, BulletinFormatter(), backend, obs)
    committers = CommitterCache(gitee)
    handler = EventHandler(handler_config(settings), gitee, service, committers, bot.login)

    return AppContext(
        settings=settings,
        gitee=gitee,
        committers=committers,
        service=service,
        handler=handler,
        engine=engine,
        backend=backend,
    )


async def refresh_committers_daily(committers: CommitterCache, interval: float = COMMITTER_CHECK_INTERVAL):
    """Keep the committer cache fresh until cancelled."""
    while True:
        if committers.needs_refresh():
            try:
                await asyncio.to_thread(committers.refresh)
            except Exception:
                logger.exception("Committer cache refresh failed")
        await asyncio.sleep(interval)
