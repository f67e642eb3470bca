from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..services.diagnosis import DiagnosisReport, group_report
from ._common import read_json_object

router = APIRouter(prefix="/api/diagnosis", tags=["diagnosis"])


@router.post("/group")
async def group_diagnosis(request: Request):
    """Group a raw diagnosis report by chain position."""
    data = await read_json_object(request)
    if data is None:
        return JSONResponse({"ok": False, "error": "请求体必须为 JSON 对象"}, status_code=400)
    if not isinstance(data.get("results", []), list):
        return JSONResponse({"ok": False, "error": "results 必须为数组"}, status_code=400)
    report = DiagnosisReport.from_api(data)
    grouped = group_report(report)
    return {
        "ok": True,
        "name": report.subject_name,
        "timestamp": report.timestamp,
        **grouped.to_dict(),
    }
