"""
GitLab REST v4 客户端（review 闭环用到的 4 个接口）。

约定：
- 只负责请求与 schema 校验；评论怎么发、失败怎么降级由 poster/dispatcher 决定。
- 发生错误时**直接抛错**（`GitLabAPIError`），不要吞异常（便于定位与告警）。
- 唯一的例外是仓库文件不存在（404）：返回 None，由调用方决定“没有配置”怎么处理。
"""

from __future__ import annotations

import base64
import binascii
import logging
from urllib.parse import quote

import httpx

from whytho.gitlab.schemas import GitLabDiscussion
from whytho.gitlab.schemas import GitLabMergeRequestChanges
from whytho.gitlab.schemas import GitLabNote
from whytho.gitlab.schemas import GitLabRepositoryFile

logger = logging.getLogger(__name__)


class GitLabAPIError(RuntimeError):
    """GitLab API 返回非 2xx。"""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"GitLab API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class GitLabClient:
    """所有请求都带 PRIVATE-TOKEN，并共用调用方传入的 AsyncClient。"""

    def __init__(self, base_url: str, private_token: str, http_client: httpx.AsyncClient) -> None:
        self._api_root = f"{base_url.rstrip('/')}/api/v4"
        self._auth_headers = {"PRIVATE-TOKEN": private_token}
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        return dict(self._auth_headers)

    def _project_url(self, project_id: int) -> str:
        return f"{self._api_root}/projects/{project_id}"

    async def get_merge_request_changes(self, project_id: int, mr_iid: int) -> GitLabMergeRequestChanges:
        """GET /projects/:id/merge_requests/:iid/changes：每个文件的 diff + 行内评论需要的 diff_refs。"""
        url = f"{self._project_url(project_id)}/merge_requests/{mr_iid}/changes"
        response = await self._http_client.get(url, headers=self._headers())
        _raise_for_status(response)
        changes = GitLabMergeRequestChanges.model_validate(response.json())
        logger.debug(f"Fetched {len(changes.changes)} change(s) for project={project_id} mr={mr_iid}")
        return changes

    async def post_merge_request_note(self, project_id: int, mr_iid: int, body: str) -> GitLabNote:
        """在 MR 下发布一条全局评论（note）。"""
        url = f"{self._project_url(project_id)}/merge_requests/{mr_iid}/notes"
        response = await self._http_client.post(url, headers=self._headers(), json={"body": body})
        _raise_for_status(response)
        return GitLabNote.model_validate(response.json())

    async def create_merge_request_discussion(
        self,
        project_id: int,
        mr_iid: int,
        body: str,
        position: dict[str, object],
    ) -> GitLabDiscussion:
        """
        发布行内评论：POST /discussions，position 里带 diff_refs + 行号。

        GitLab 对 position 校验很严格（行号不在 diff 里会直接 400），失败时抛错由上游兜底。
        """
        url = f"{self._project_url(project_id)}/merge_requests/{mr_iid}/discussions"
        response = await self._http_client.post(
            url,
            headers=self._headers(),
            json={"body": body, "position": position},
        )
        _raise_for_status(response)
        return GitLabDiscussion.model_validate(response.json())

    async def get_repository_file(self, project_id: int, file_path: str, ref: str) -> str | None:
        """
        读取仓库文件内容。

        - 文件存在：返回解码后的文本
        - 文件不存在（404）：返回 None
        - 其它错误 / 无法解码：抛错
        """
        url = f"{self._project_url(project_id)}/repository/files/{quote(file_path, safe='')}"
        response = await self._http_client.get(url, headers=self._headers(), params={"ref": ref})
        if response.status_code == 404:
            logger.debug(f"{file_path} not found in project={project_id} ref={ref}")
            return None
        _raise_for_status(response)

        file = GitLabRepositoryFile.model_validate(response.json())
        if file.encoding != "base64":
            return file.content
        try:
            return base64.b64decode(file.content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ValueError(f"Failed to decode {file_path} from project {project_id}") from exc


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code >= 400:
        raise GitLabAPIError(status_code=response.status_code, body=response.text)
