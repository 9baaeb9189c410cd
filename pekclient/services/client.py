"""
Clustering server client.

PekClient owns the connection to the server, the catalog of published
datasets and the registry of tasks created through it. Partial results
pushed by the server are routed to the task whose id they are addressed to.
"""

import functools
import json
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from pekclient.config.settings_loader import Settings, get_settings
from pekclient.core.dataset import PekDataset
from pekclient.core.task import PekTask
from pekclient.schemas.data_models import ResponseEnvelope, ServerInfo
from pekclient.storage.dataset_cache import DatasetCache, build_dataset_cache
from pekclient.utils.advanced_logging import PerformanceLogger
from pekclient.utils.error_handling import (
    PartialResultDecodeError,
    PekClientError,
    RemoteError,
    RetryConfig,
    retry_async,
)
from pekclient.utils.network import Connection, SocketIOConnection


logger = structlog.get_logger(__name__)


def unwrap_response(response: Any, event: str) -> Any:
    """
    Extract the data of a server acknowledgement.

    Data sent as a JSON string is parsed; structured data is returned as is.

    Raises:
        RemoteError: If the server reported an error
    """
    try:
        if isinstance(response, str):
            response = json.loads(response)
        envelope = ResponseEnvelope.model_validate(response if response is not None else {})
    except (ValueError, ValidationError) as e:
        raise PekClientError(
            f"Unexpected response to '{event}': {response!r}",
            details={"event": event},
        ) from e

    if envelope.error:
        raise RemoteError(
            envelope.error_message or f"The server reported an error for '{event}'.",
            details={"event": event},
        )

    data = envelope.data
    if isinstance(data, str):
        try:
            return json.loads(data)
        except ValueError:
            logger.warning("response_data_not_json", event_name=event)
            return data
    if data is not None and not isinstance(data, (dict, list)):
        logger.warning("unexpected_response_data", event_name=event, data_type=type(data).__name__)
    return data


class PekClient:
    """
    Client of a clustering server.

    Create it with ``await PekClient.connect(url)``.

    Example:
        async with await PekClient.connect("http://localhost:3347") as client:
            dataset = client.get_dataset("Wine")
            pca = await dataset.get_pca()
    """

    def __init__(
        self,
        server_url: str,
        connection: Connection,
        info: ServerInfo,
        cache: Optional[DatasetCache] = None,
    ):
        """
        Args:
            server_url: URL the connection was opened with
            connection: Connected transport
            info: Server information returned by the ``info`` request
            cache: Cache shared by the datasets (in-memory if None)
        """
        self._connection = connection
        self._cache = cache
        self._tasks: Dict[str, PekTask] = {}

        self.server = {"url": server_url, "version": info.server_version}
        self._datasets: Dict[str, PekDataset] = {
            name: PekDataset(name, self, cache) for name in info.datasets
        }

    @classmethod
    async def connect(
        cls,
        server_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        connection: Optional[Connection] = None,
    ) -> "PekClient":
        """
        Connect to a server and load its dataset catalog.

        Args:
            server_url: Server URL (defaults to the configured one)
            settings: Settings (defaults to the loaded configuration)
            connection: Transport to use instead of socket.io

        Returns:
            Connected PekClient
        """
        settings = settings or get_settings()
        server_url = server_url or settings.connection.url

        if connection is None:
            connection = SocketIOConnection(
                server_url,
                request_timeout=settings.connection.request_timeout,
                connect_timeout=settings.connection.connect_timeout,
                transports=settings.connection.transports,
            )

        retry_config = RetryConfig(**settings.connection.retry.model_dump())
        await retry_async(config=retry_config)(connection.connect)()

        try:
            info = ServerInfo.model_validate(unwrap_response(await connection.send("info"), "info"))
            client = cls(server_url, connection, info, cache=build_dataset_cache(settings.cache))
        except Exception as e:
            logger.error("server_info_failed", url=server_url, error=str(e), error_type=type(e).__name__)
            await connection.close()
            raise

        logger.info(
            "connected_to_server",
            url=server_url,
            server_version=info.server_version,
            datasets=len(info.datasets),
        )
        return client

    async def __aenter__(self) -> "PekClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def id(self) -> Optional[str]:
        """Identity of this client on the server."""
        return self._connection.id

    def get_dataset_names(self) -> List[str]:
        return list(self._datasets)

    def get_dataset(self, name: str) -> PekDataset:
        """
        Return the dataset with the given name.

        Raises:
            PekClientError: If the server does not publish the dataset
        """
        if name not in self._datasets:
            raise PekClientError(
                f"The dataset with name='{name}' does not exist.",
                details={"dataset": name},
            )
        return self._datasets[name]

    def create_task(self) -> PekTask:
        """Create a pending task and subscribe to its partial results."""
        task = PekTask(self)
        self._tasks[task.id] = task
        self._connection.on(task.id, functools.partial(self._route_partial_result, task.id))
        logger.debug("task_created", task_id=task.id)
        return task

    def get_task(self, task_id: str) -> Optional[PekTask]:
        return self._tasks.get(task_id)

    def remove_task(self, task_id: str) -> Optional[PekTask]:
        """Forget a task; later messages addressed to it are dropped."""
        return self._tasks.pop(task_id, None)

    def _route_partial_result(self, task_id: str, message: Any) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            logger.debug("partial_result_for_unknown_task", task_id=task_id)
            return

        try:
            task.notify_partial_result(message)
        except PartialResultDecodeError as e:
            logger.warning("partial_result_dropped", task_id=task_id, error=e.message)

    async def _send(self, event: str, payload: Any = None) -> Any:
        """Send a request and return the data of the acknowledgement."""
        with PerformanceLogger("request", logger=logger, event_name=event):
            response = await self._connection.send(event, payload)
            return unwrap_response(response, event)

    async def close(self) -> None:
        await self._connection.close()
        if self._cache is not None:
            await self._cache.close()
