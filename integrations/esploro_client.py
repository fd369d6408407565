"""
Research repository REST client.

Thin async wrapper over the repository API used by the import pipeline:
asset metadata, per-asset file additions, the file type mapping table,
itemized sets, and job execution/status. Every non-2xx response becomes a
RemoteApiError; a 404 on an asset fetch becomes AssetNotFoundError.
"""

from typing import Any, Optional
import httpx
import structlog

from config import settings
from exceptions import AssetNotFoundError, RemoteApiError
from models.asset import AssetFile, AssetFileLink, AssetMetadata, FileTypeEntry
from models.job import JobCounter, JobDefinition, JobInstanceStatus, RepositorySet
from utils.text_utils import safe_trim

logger = structlog.get_logger(__name__)

FILE_TYPE_MAPPING_TABLE = "AssetFileAndLinkTypes"


def _first(raw: dict, *keys: str) -> Any:
    """First non-empty value among candidate keys."""
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _value_of(raw: Any) -> Optional[str]:
    """Unwrap {"value": x} objects the repository uses for coded fields."""
    if isinstance(raw, dict):
        raw = raw.get("value")
    if raw is None:
        return None
    return safe_trim(raw) or None


def _parse_file(raw: dict) -> AssetFile:
    supplemental = _first(raw, "supplemental", "link.supplemental", "file.supplemental")
    if isinstance(supplemental, str):
        supplemental = supplemental.lower() == "true"

    return AssetFile(
        id=_value_of(_first(raw, "id", "file.id", "link.id")),
        title=_value_of(_first(raw, "title", "file.title", "link.title", "file.name")),
        url=_value_of(_first(raw, "url", "link.url", "file.url")),
        type=_value_of(_first(raw, "type", "link.type", "file.type")),
        description=_value_of(_first(raw, "description", "link.description", "file.description")),
        supplemental=supplemental,
    )


def _parse_error_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}

    errors = ((body or {}).get("errorList") or {}).get("error") or []
    if isinstance(errors, dict):
        errors = [errors]
    return errors[0] if errors else {}


class EsploroClient:
    """
    Async client for the repository API.

    One httpx.AsyncClient is created lazily and reused for the client's
    lifetime. Pass transport= to route requests elsewhere (tests).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.esploro_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.esploro_api_key
        self.timeout = timeout or settings.request_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        if not self.api_key:
            logger.warning("esploro_api_key_not_configured")

    async def __aenter__(self) -> "EsploroClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
            if self.api_key:
                headers["Authorization"] = f"apikey {self.api_key}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        """
        Issue one request and return the decoded JSON body.

        Raises:
            RemoteApiError: On transport failure or non-2xx status
        """
        try:
            response = await self._http().request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.error("esploro_request_timeout", method=method, path=path)
            raise RemoteApiError(f"Request timed out after {self.timeout}s: {e}")
        except httpx.HTTPError as e:
            logger.error("esploro_request_failed", method=method, path=path, error=str(e))
            raise RemoteApiError(f"Network error: {e}")

        if response.is_error:
            api_error = _parse_error_body(response)
            logger.warning(
                "esploro_error_response",
                method=method,
                path=path,
                status=response.status_code,
                error_code=api_error.get("errorCode"),
            )
            raise RemoteApiError(
                message=api_error.get("errorMessage") or response.reason_phrase or "Request failed",
                status=response.status_code,
                status_text=response.reason_phrase,
                error_code=api_error.get("errorCode"),
                error_message=api_error.get("errorMessage"),
                tracking_id=api_error.get("trackingId"),
            )

        if not response.content:
            return {}
        return response.json()

    # ===================
    # ASSETS
    # ===================

    async def fetch_asset(self, asset_id: str) -> AssetMetadata:
        """
        Fetch an asset with its current files.

        Raises:
            AssetNotFoundError: If the repository answers 404
            RemoteApiError: On any other failure
        """
        try:
            data = await self._request("GET", f"/esploro/v1/assets/{asset_id}")
        except RemoteApiError as e:
            if e.status == 404:
                raise AssetNotFoundError(asset_id)
            raise

        records = data.get("records") if isinstance(data, dict) else None
        if records is None:
            record = data
        else:
            record = records[0] if records else None
        if not record:
            raise AssetNotFoundError(asset_id)

        raw_files = _first(record, "files", "file") or []
        if isinstance(raw_files, dict):
            raw_files = [raw_files]

        asset_type = _first(record, "resourcetype.esploro", "asset_type", "resourcetype")

        return AssetMetadata(
            asset_id=asset_id,
            title=_value_of(record.get("title")),
            asset_type=_value_of(asset_type),
            files=[_parse_file(raw) for raw in raw_files if isinstance(raw, dict)],
        )

    async def submit_files(self, asset_id: str, files: list[AssetFileLink]) -> dict:
        """Queue every file for one asset in a single call."""
        links = []
        for file in files:
            link = {
                "link.url": file.url,
                "link.title": file.title or file.url,
                "link.supplemental": "true" if file.supplemental else "false",
            }
            if file.description:
                link["link.description"] = file.description
            if file.type:
                link["link.type"] = file.type
            links.append(link)

        payload = {"records": [{"temporary": {"linksToExtract": links}}]}

        logger.info("submitting_asset_files", asset_id=asset_id, file_count=len(files))
        return await self._request(
            "POST",
            f"/esploro/v1/assets/{asset_id}",
            params={"op": "patch", "action": "add"},
            json=payload,
        )

    # ===================
    # FILE TYPE VOCABULARY
    # ===================

    async def fetch_type_vocabulary(self) -> list[FileTypeEntry]:
        """Rows of the AssetFileAndLinkTypes mapping table."""
        data = await self._request("GET", f"/conf/mapping-tables/{FILE_TYPE_MAPPING_TABLE}")

        if isinstance(data, dict):
            rows = data.get("row") or data.get("rows") or []
        else:
            rows = data or []
        entries = []
        for row in rows:
            entry_id = _value_of(_first(row, "id", "column0"))
            target_code = _value_of(_first(row, "targetCode", "target_code", "column1"))
            if not entry_id or not target_code:
                continue
            entries.append(FileTypeEntry(
                id=entry_id,
                target_code=target_code,
                applicability=_value_of(_first(row, "sourceCode1", "column2")),
                applicable_asset_types=_value_of(_first(row, "sourceCode2", "column3")),
            ))

        logger.info("file_type_vocabulary_loaded", count=len(entries))
        return entries

    # ===================
    # SETS
    # ===================

    @staticmethod
    def _parse_set(data: dict) -> RepositorySet:
        members = ((data.get("members") or {}).get("member")) or []
        member_count = data.get("number_of_members")
        if isinstance(member_count, dict):
            member_count = member_count.get("value")

        return RepositorySet(
            id=safe_trim(data.get("id")),
            name=safe_trim(data.get("name")),
            description=data.get("description"),
            member_ids=[safe_trim(m.get("id")) for m in members if m.get("id")],
            member_count=int(member_count) if member_count not in (None, "") else len(members),
        )

    async def create_set(
        self,
        name: str,
        description: str,
        member_ids: Optional[list[str]] = None,
    ) -> RepositorySet:
        """Create an itemized asset set, optionally with initial members."""
        payload: dict[str, Any] = {
            "name": name,
            "description": description,
            "type": {"value": "ITEMIZED"},
            "content": {"value": "ASSET"},
            "private": {"value": "false"},
            "status": {"value": "ACTIVE"},
        }
        if member_ids:
            payload["members"] = {
                "total_record_count": str(len(member_ids)),
                "member": [{"id": asset_id} for asset_id in member_ids],
            }

        data = await self._request("POST", "/conf/sets", json=payload)
        return self._parse_set(data)

    async def get_set(self, set_id: str) -> RepositorySet:
        data = await self._request("GET", f"/conf/sets/{set_id}")
        return self._parse_set(data)

    async def add_set_members(self, set_id: str, asset_ids: list[str]) -> RepositorySet:
        """Add members; the response carries the updated member count."""
        payload = {"members": {"member": [{"id": asset_id} for asset_id in asset_ids]}}
        data = await self._request(
            "POST",
            f"/conf/sets/{set_id}",
            params={"op": "add_members"},
            json=payload,
        )
        return self._parse_set(data)

    async def delete_set(self, set_id: str) -> None:
        await self._request("DELETE", f"/conf/sets/{set_id}")

    # ===================
    # JOBS
    # ===================

    async def get_job(self, job_id: str) -> JobDefinition:
        data = await self._request("GET", f"/conf/jobs/{job_id}")
        return JobDefinition(
            id=safe_trim(data.get("id") or job_id),
            name=data.get("name"),
            description=data.get("description"),
        )

    async def list_jobs(self, offset: int = 0, limit: int = 100) -> tuple[list[JobDefinition], int]:
        """One page of jobs and the total record count."""
        data = await self._request("GET", "/conf/jobs", params={"offset": offset, "limit": limit})
        jobs = [
            JobDefinition(id=safe_trim(job.get("id")), name=job.get("name"), description=job.get("description"))
            for job in data.get("job") or []
            if job.get("id")
        ]
        return jobs, int(data.get("total_record_count") or 0)

    async def run_job(self, job_id: str, set_id: str) -> str:
        """
        Trigger a job against a set.

        Returns:
            The new job instance id
        """
        data = await self._request(
            "POST",
            f"/conf/jobs/{job_id}/instances",
            json={"set_id": set_id},
        )

        info = data.get("additional_info") or {}
        instance_id = safe_trim(data.get("id")) or _value_of(info.get("instance"))
        if not instance_id and info.get("link"):
            instance_id = info["link"].rstrip("/").rsplit("/", 1)[-1]
        if not instance_id:
            raise RemoteApiError("Job was triggered but no instance id was returned")

        logger.info("job_triggered", job_id=job_id, set_id=set_id, instance_id=instance_id)
        return instance_id

    async def fetch_job_instance(self, job_id: str, instance_id: str) -> JobInstanceStatus:
        data = await self._request("GET", f"/conf/jobs/{job_id}/instances/{instance_id}")

        status = data.get("status") or {}
        counters = [
            JobCounter(
                type=_value_of(counter.get("type")) or "unknown",
                description=(counter.get("type") or {}).get("desc") if isinstance(counter.get("type"), dict) else None,
                value=safe_trim(counter.get("value")) or "0",
            )
            for counter in data.get("counter") or []
        ]

        progress = data.get("progress") or 0
        return JobInstanceStatus(
            id=safe_trim(data.get("id") or instance_id),
            name=data.get("name"),
            progress=max(0, min(100, int(progress))),
            status=_value_of(status) or "QUEUED",
            status_desc=status.get("desc") if isinstance(status, dict) else None,
            counters=counters,
            alerts=[_value_of(a) or "" for a in data.get("alert") or []],
            submit_time=data.get("submit_time"),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
        )


# Singleton instance
_esploro_client: Optional[EsploroClient] = None


def get_esploro_client() -> EsploroClient:
    """Get or create EsploroClient instance."""
    global _esploro_client
    if _esploro_client is None:
        _esploro_client = EsploroClient()
    return _esploro_client
