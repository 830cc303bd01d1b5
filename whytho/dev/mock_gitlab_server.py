"""
本地 Mock GitLab API server（只覆盖 review 闭环用到的接口）。

覆盖的接口：
- GET  merge_requests/:iid/changes（带 diff_refs）
- POST merge_requests/:iid/notes / discussions
- GET  repository/files/:path（不存在返回 404）

示例 MR 里有一个普通改动和一个会被 `.whytho/config.yaml` 排除的 vendor 文件。

启动：
  python -m whytho.dev.mock_gitlab_server
"""

from __future__ import annotations

import base64

import uvicorn
from fastapi import FastAPI
from fastapi import HTTPException
from pydantic import BaseModel

_SETTINGS_DIFF = (
    "@@ -3,2 +3,4 @@ import json\n"
    " def load_settings(path):\n"
    "-    return json.load(open(path))\n"
    '+    with open(path, encoding="utf-8") as fh:\n'
    "+        data = json.load(fh)\n"
    "+    return data\n"
)

_DIFF_REFS = {
    "base_sha": "0000000000000000000000000000000000000000",
    "head_sha": "1111111111111111111111111111111111111111",
    "start_sha": "0000000000000000000000000000000000000000",
}

# 目标分支上的仓库文件（path -> 内容）
_repository_files: dict[str, str] = {
    ".whytho/config.yaml": "exclude_paths:\n  - vendor/**\n",
}

_notes: list[dict[str, object]] = []
_discussions: list[dict[str, object]] = []


class NoteCreateRequest(BaseModel):
    body: str


class DiscussionCreateRequest(BaseModel):
    body: str
    position: dict[str, object]


def _change(path: str, diff: str, new_file: bool = False) -> dict[str, object]:
    return {
        "old_path": path,
        "new_path": path,
        "new_file": new_file,
        "renamed_file": False,
        "deleted_file": False,
        "diff": diff,
    }


app = FastAPI(title="Mock GitLab API", version="0.1.0")


@app.get("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/changes")
async def get_merge_request_changes(project_id: int, mr_iid: int) -> dict[str, object]:
    return {
        "project_id": project_id,
        "iid": mr_iid,
        "changes": [
            _change("src/settings.py", _SETTINGS_DIFF),
            _change("vendor/lib.go", "@@ -0,0 +1 @@\n+package lib\n", new_file=True),
        ],
        "diff_refs": _DIFF_REFS,
    }


@app.post("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/notes", status_code=201)
async def create_note(project_id: int, mr_iid: int, req: NoteCreateRequest) -> dict[str, object]:
    note = {"id": len(_notes) + 1, "body": req.body, "project_id": project_id, "mr_iid": mr_iid}
    _notes.append(note)
    return {"id": note["id"], "body": req.body}


@app.post("/api/v4/projects/{project_id}/merge_requests/{mr_iid}/discussions", status_code=201)
async def create_discussion(project_id: int, mr_iid: int, req: DiscussionCreateRequest) -> dict[str, object]:
    # 真实 GitLab 对没有行号的 text position 同样返回 400
    if "new_line" not in req.position and "old_line" not in req.position:
        raise HTTPException(status_code=400, detail="position requires new_line or old_line")
    discussion = {
        "id": f"d{len(_discussions) + 1}",
        "body": req.body,
        "position": req.position,
        "project_id": project_id,
        "mr_iid": mr_iid,
    }
    _discussions.append(discussion)
    return {"id": discussion["id"]}


@app.get("/api/v4/projects/{project_id}/repository/files/{file_path:path}")
async def get_repository_file(project_id: int, file_path: str, ref: str) -> dict[str, object]:
    content = _repository_files.get(file_path)
    if content is None:
        raise HTTPException(status_code=404, detail=f"404 File Not Found ({project_id}@{ref})")
    return {
        "file_path": file_path,
        "ref": ref,
        "encoding": "base64",
        "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
    }


@app.get("/__debug__/comments")
async def debug_comments() -> dict[str, object]:
    """本地联调时查看已经“发布”的评论。"""
    return {"notes": _notes, "discussions": _discussions}


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9002)


if __name__ == "__main__":
    main()
