"""FastAPI server for wardrobe combination try-on.

Receives a wardrobe from the web client:
- body_photos: Base64-encoded photos of the user, or scan_id for a saved scan
- tops / bottoms / accessories: items, each with one or more Base64 photos
- profile: user stats, occasion and the volumetric (3D scan) flag

Generation runs in the background; clients poll /api/runs/current.
"""

from datetime import datetime

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from wardrobe_vton.config import load_config
from wardrobe_vton.errors import ProfileDetectionError, RunInProgressError, WardrobeError
from wardrobe_vton.logging_config import configure_logging
from wardrobe_vton.models import (
    CritiqueRecord,
    ImageArtifact,
    ItemRole,
    TaskState,
    UserProfile,
    WardrobeItem,
    WardrobeSnapshot,
)
from wardrobe_vton.pipeline import OutfitStudio
from wardrobe_vton.storage import ScanStorageFullError, StorageInfo


app = FastAPI(
    title="Wardrobe Try-On API",
    description="Renders and critiques every top x bottom combination of a wardrobe",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ItemPayload(BaseModel):
    """One clothing item."""
    id: str | None = None
    images: list[str] = Field(default_factory=list)  # Base64 data URLs

    @field_validator("id")
    @classmethod
    def no_path_characters(cls, value: str | None) -> str | None:
        if value is not None and ("/" in value or "\\" in value or ".." in value):
            raise ValueError("Item ids may not contain '/', '\\' or '..'")
        return value


class RunRequest(BaseModel):
    """Request body for a generation run."""
    body_photos: list[str] = Field(default_factory=list)
    scan_id: str | None = None  # saved scan to use instead of body_photos
    tops: list[ItemPayload]
    bottoms: list[ItemPayload]
    accessories: list[ItemPayload] = Field(default_factory=list)
    profile: UserProfile = Field(default_factory=UserProfile)


class RunResponse(BaseModel):
    run_id: str | None
    in_progress: bool
    task_ids: list[str]


class TaskResult(BaseModel):
    """One combination as the client renders it."""
    task_id: str
    top_id: str
    bottom_id: str
    phase: str
    loading: bool
    image_base64: str | None = None  # data URL
    critique: CritiqueRecord | None = None
    error: str | None = None
    error_category: str | None = None


class ResultsResponse(BaseModel):
    run_id: str | None
    in_progress: bool
    summary: dict[str, int]
    results: list[TaskResult]


class DetectRequest(BaseModel):
    body_photo: str
    profile: UserProfile = Field(default_factory=UserProfile)


class DetectResponse(BaseModel):
    success: bool
    profile: UserProfile | None = None
    error: str | None = None


class ScanRequest(BaseModel):
    images: list[str]


class ScanSummary(BaseModel):
    id: str
    timestamp: datetime
    image_count: int
    preview: str | None = None  # data URL of the first image


class ScanDetail(ScanSummary):
    images: list[str]


# Initialize studio (will be done on first request)
_studio: OutfitStudio | None = None


def get_studio() -> OutfitStudio:
    """Get or create the studio instance."""
    global _studio
    if _studio is None:
        config = load_config()
        configure_logging(config.log_level)
        _studio = OutfitStudio(config)
    return _studio


def _decode_images(images: list[str]) -> tuple[ImageArtifact, ...]:
    try:
        return tuple(ImageArtifact.from_data_url(data) for data in images)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _item(role: ItemRole, payload: ItemPayload) -> WardrobeItem:
    fields = {"role": role, "images": _decode_images(payload.images)}
    if payload.id:
        fields["id"] = payload.id
    return WardrobeItem(**fields)


def _snapshot(request: RunRequest, body_images: tuple[ImageArtifact, ...]) -> WardrobeSnapshot:
    return WardrobeSnapshot(
        body_images=body_images,
        tops=tuple(_item(ItemRole.TOP, item) for item in request.tops),
        bottoms=tuple(_item(ItemRole.BOTTOM, item) for item in request.bottoms),
        accessories=tuple(_item(ItemRole.ACCESSORY, item) for item in request.accessories),
    )


def _task_result(state: TaskState) -> TaskResult:
    return TaskResult(
        task_id=state.task_id,
        top_id=state.top_id,
        bottom_id=state.bottom_id,
        phase=state.phase.value,
        loading=state.loading,
        image_base64=state.image.to_data_url() if state.image else None,
        critique=state.critique,
        error=state.error_message,
        error_category=state.error_category.value if state.error_category else None,
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Wardrobe Try-On API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Detailed health check."""
    studio = get_studio()
    check = getattr(studio.image_client, "check_connection", None)
    comfyui_ok = await check() if check is not None else True

    return {
        "status": "ok" if comfyui_ok else "degraded",
        "comfyui": "connected" if comfyui_ok else "disconnected",
        "generating": studio.in_progress,
    }


@app.post("/api/runs", response_model=RunResponse, status_code=202)
async def start_run(request: RunRequest, background_tasks: BackgroundTasks):
    """Start rendering every combination of the submitted wardrobe.

    Pending results for every combination are available as soon as this
    returns; images and critiques fill in as each one finishes.
    """
    studio = get_studio()
    profile = request.profile
    if request.scan_id:
        scan = studio.scan_store.get_scan(request.scan_id)
        if scan is None:
            raise HTTPException(status_code=404, detail=f"Scan not found: {request.scan_id}")
        body_images = tuple(scan.images)
        profile = profile.for_scan()
    else:
        body_images = _decode_images(request.body_photos)
    snapshot = _snapshot(request, body_images)

    try:
        descriptors = studio.prepare(profile, snapshot)
    except WardrobeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    background_tasks.add_task(studio.execute, descriptors, profile)

    return RunResponse(
        run_id=studio.results.run_id,
        in_progress=studio.in_progress,
        task_ids=[descriptor.task_id for descriptor in descriptors],
    )


@app.get("/api/runs/current", response_model=ResultsResponse)
async def current_run():
    """Current state of every combination in the latest run."""
    results = get_studio().results
    return ResultsResponse(
        run_id=results.run_id,
        in_progress=results.in_progress,
        summary=results.summary(),
        results=[_task_result(state) for state in results.get_all()],
    )


@app.post("/api/profile/detect", response_model=DetectResponse)
async def detect_profile(request: DetectRequest):
    """Estimate body stats from a photo and merge them into the profile."""
    studio = get_studio()
    image = _decode_images([request.body_photo])[0]
    try:
        profile = await studio.detect_profile(image, request.profile)
    except ProfileDetectionError as e:
        return DetectResponse(success=False, error=str(e))
    return DetectResponse(success=True, profile=profile)


@app.get("/api/scans", response_model=list[ScanSummary])
async def list_scans():
    return [
        ScanSummary(
            id=scan.id,
            timestamp=scan.timestamp,
            image_count=len(scan.images),
            preview=scan.images[0].to_data_url() if scan.images else None,
        )
        for scan in get_studio().scan_store.list_scans()
    ]


@app.get("/api/scans/storage", response_model=StorageInfo)
async def scan_storage():
    """Bytes used by saved scans against the store limit."""
    return get_studio().scan_store.storage_info()


@app.delete("/api/scans")
async def clear_scans():
    get_studio().scan_store.clear()
    return {"cleared": True}


@app.get("/api/scans/{scan_id}", response_model=ScanDetail)
async def get_scan(scan_id: str):
    scan = get_studio().scan_store.get_scan(scan_id)
    if scan is None:
        raise HTTPException(status_code=404, detail=f"Scan not found: {scan_id}")
    images = [image.to_data_url() for image in scan.images]
    return ScanDetail(
        id=scan.id,
        timestamp=scan.timestamp,
        image_count=len(images),
        preview=images[0] if images else None,
        images=images,
    )


@app.post("/api/scans", response_model=ScanSummary, status_code=201)
async def save_scan(request: ScanRequest):
    if not request.images:
        raise HTTPException(status_code=400, detail="A scan needs at least one image")
    images = list(_decode_images(request.images))
    try:
        scan = get_studio().scan_store.save_scan(images)
    except ScanStorageFullError as e:
        raise HTTPException(status_code=507, detail=str(e)) from e
    return ScanSummary(
        id=scan.id,
        timestamp=scan.timestamp,
        image_count=len(scan.images),
        preview=scan.images[0].to_data_url(),
    )


@app.delete("/api/scans/{scan_id}")
async def delete_scan(scan_id: str):
    if not get_studio().scan_store.delete_scan(scan_id):
        raise HTTPException(status_code=404, detail=f"Scan not found: {scan_id}")
    return {"deleted": scan_id}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
