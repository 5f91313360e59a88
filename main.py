import os
import time
import base64
import logging
from dataclasses import replace
from typing import Optional

import uvicorn
from fastapi import APIRouter, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from invite_engine.background import BackgroundRemover
from invite_engine.config import RenderAssets, Settings
from invite_engine.errors import InvalidUploadError, InviteError, ServiceUnavailableError
from invite_engine.filtergraph import RenderRequest
from invite_engine.illustration import IllustrationProvider, create_provider
from invite_engine.layout import LayoutResolver, load_video_config
from invite_engine.payments import Pricing, RazorpayClient
from invite_engine.renderer import InviteRenderer, list_engine_filters
from invite_engine.uploads import (
    MAX_IMAGE_BYTES,
    MAX_VIDEO_BYTES,
    normalize_character_image,
    validate_image,
    validate_webm,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("server")

router = APIRouter()

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def new_request_id() -> str:
    """Short id for log correlation: current milliseconds in base36"""
    value = int(time.time() * 1000)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


async def read_upload(upload: Optional[UploadFile], max_bytes: int, label: str = "Image") -> Optional[bytes]:
    """Upload body, or None when the field is absent or empty. Never buffers more than max_bytes + 1"""
    if upload is None:
        return None
    too_large = InvalidUploadError(f"{label} must be under {max_bytes // (1024 * 1024)}MB")
    if upload.size is not None and upload.size > max_bytes:
        raise too_large
    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise too_large
    return data or None


# --- DATA MODELS ---

class CreateOrderRequest(BaseModel):
    """Razorpay order request (USD only)"""
    venue: str = ""
    currency: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    """Razorpay checkout result to verify"""
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(default="", alias="orderId")
    payment_id: str = Field(default="", alias="paymentId")
    signature: str = ""
    venue: str = ""


# --- ERROR HANDLING ---

async def invite_error_handler(request: Request, exc: InviteError):
    """Short user-facing message; raw diagnostics only in dev mode"""
    body = {"success": False, "error": exc.public_message}
    if request.app.state.settings.dev_mode and exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.url.path}")
    body = {"success": False, "error": "Internal server error"}
    if request.app.state.settings.dev_mode:
        body["details"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# --- HEALTH & PRICING ---

@router.get("/api/health")
async def health(request: Request):
    """Liveness check"""
    return {"status": "ok", "devMode": request.app.state.settings.dev_mode}


@router.get("/api/pricing")
async def pricing(request: Request, venue: str = ""):
    """Price for an invite download, derived from server config only"""
    resolved = request.app.state.payments.pricing.resolve(venue)
    return {"currency": resolved.currency, "amount": resolved.major_amount}


# --- PAYMENTS ---

@router.post("/api/payment/razorpay/create-order")
async def create_razorpay_order(request: Request, body: CreateOrderRequest):
    """Create a Razorpay order for the invite price"""
    request_id = new_request_id()
    return await request.app.state.payments.create_order(
        venue=body.venue, currency=body.currency, request_id=request_id
    )


@router.post("/api/payment/razorpay/verify")
async def verify_razorpay_payment(request: Request, body: VerifyPaymentRequest):
    """Verify a Razorpay checkout signature and capture status"""
    request_id = new_request_id()
    return await request.app.state.payments.verify(
        body.order_id, body.payment_id, body.signature, venue=body.venue, request_id=request_id
    )


# --- IMAGE PIPELINE ---

@router.post("/api/generate")
async def generate_illustration(request: Request, photo: Optional[UploadFile] = File(None)):
    """Turn an uploaded photo into an illustrated character image"""
    request_id = new_request_id()
    data = await read_upload(photo, MAX_IMAGE_BYTES, label="Photo")
    mime_type = validate_image(data, label="Photo")

    illustrator: Optional[IllustrationProvider] = request.app.state.illustrator
    if illustrator is None:
        raise ServiceUnavailableError(
            'IMAGE_GENERATION_PROVIDER is required. Use "openai" or "gemini".',
            public_message="Generation is not available right now.",
        )

    image = await illustrator.generate(data, mime_type=mime_type, request_id=request_id)
    logger.info(f"✅ [{request_id}] Illustration generated ({len(image) / 1024:.1f} KB)")
    return {
        "success": True,
        "characterImage": f"data:image/png;base64,{base64.b64encode(image).decode('ascii')}",
    }


@router.post("/api/remove-background")
async def remove_background(request: Request, image: Optional[UploadFile] = File(None)):
    """Server-side background removal fallback"""
    request_id = new_request_id()
    data = await read_upload(image, MAX_IMAGE_BYTES)
    mime_type = validate_image(data)
    result = await request.app.state.remover.remove(data, mime_type=mime_type, request_id=request_id)
    return {
        "success": True,
        "imageDataURL": f"data:image/png;base64,{base64.b64encode(result).decode('ascii')}",
    }


# --- VIDEO ---

@router.post("/api/convert-video")
async def convert_video(request: Request, video: Optional[UploadFile] = File(None)):
    """WebM -> MP4 for devices that cannot transcode client-side"""
    request_id = new_request_id()
    data = await read_upload(video, MAX_VIDEO_BYTES, label="Video")
    validate_webm(data)
    renderer: InviteRenderer = request.app.state.renderer
    mp4 = await renderer.convert_webm(
        data, timeout_sec=request.app.state.settings.convert_timeout_sec, request_id=request_id
    )
    return Response(
        content=mp4,
        media_type="video/mp4",
        headers={"Content-Disposition": 'attachment; filename="output.mp4"'},
    )


@router.post("/api/compose-video")
async def compose_video(
    request: Request,
    parents_name: Optional[str] = Form(None, alias="parentsName"),
    date: Optional[str] = Form(None),
    event_time: Optional[str] = Form(None, alias="time"),
    venue: Optional[str] = Form(None),
    character_image: Optional[UploadFile] = File(None, alias="characterImage"),
):
    """Compose the full invite video server-side"""
    request_id = new_request_id()
    render_request = RenderRequest(
        parents_name=parents_name or "",
        date=date or "",
        venue=venue or "",
        time=event_time or "",
    )
    # Field checks run before the image is decoded or anything touches disk
    render_request.validate()

    image = await read_upload(character_image, MAX_IMAGE_BYTES, label="Character image")
    if image is not None:
        render_request = replace(render_request, character_image=normalize_character_image(image))

    renderer: InviteRenderer = request.app.state.renderer
    video = await renderer.render(render_request, request_id=request_id)
    return Response(
        content=video,
        media_type="video/mp4",
        headers={"Content-Disposition": 'attachment; filename="wedding-invite.mp4"'},
    )


# --- APP FACTORY ---

def _resolve_ffmpeg(settings: Settings) -> str:
    try:
        return settings.ffmpeg_exe()
    except RuntimeError as e:
        logger.error(f"❌ FFmpeg NOT FOUND: {e}")
        return "ffmpeg"


def create_app(
    settings: Settings = None,
    renderer: InviteRenderer = None,
    illustrator: IllustrationProvider = None,
    remover: BackgroundRemover = None,
    payments: RazorpayClient = None,
) -> FastAPI:
    """Build the app; collaborators default to ones built from `settings`"""
    settings = settings or Settings.from_env()
    if settings.dev_mode:
        logging.getLogger("invite_engine").setLevel(logging.DEBUG)

    if renderer is None:
        assets = RenderAssets.from_dir(settings.assets_dir)
        for missing in assets.missing():
            logger.warning(f"⚠️ Asset MISSING: {missing}")
        ffmpeg_exe = _resolve_ffmpeg(settings)
        filters = list_engine_filters(ffmpeg_exe)
        renderer = InviteRenderer(
            layout=LayoutResolver(load_video_config(settings.video_config_path)),
            assets=assets,
            ffmpeg_exe=ffmpeg_exe,
            timeout_sec=settings.render_timeout_sec,
            scratch_root=settings.scratch_dir,
            engine_filters=filters,
        )
        for name in renderer.missing_filters():
            logger.error(f"❌ {ffmpeg_exe} has no '{name}' filter; renders will fail. Install ffmpeg or set FFMPEG_PATH")
    if illustrator is None:
        illustrator = create_provider(settings)
    if remover is None:
        remover = BackgroundRemover(settings.remove_bg_api_key)
    if payments is None:
        payments = RazorpayClient(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            pricing=Pricing(settings.price_usd, settings.dev_price_usd, settings.dev_mode),
            enabled=settings.razorpay_enabled,
            base_url=settings.razorpay_base_url,
        )

    app = FastAPI(title="Invite Video Engine")
    app.state.settings = settings
    app.state.renderer = renderer
    app.state.illustrator = illustrator
    app.state.remover = remover
    app.state.payments = payments

    if settings.dev_mode:
        # Dev mode accepts any origin
        app.add_middleware(CORSMiddleware, allow_origin_regex=".*", allow_credentials=True,
                           allow_methods=["*"], allow_headers=["*"])
    else:
        app.add_middleware(CORSMiddleware, allow_origins=list(settings.cors_origins), allow_credentials=True,
                           allow_methods=["*"], allow_headers=["*"])

    app.add_exception_handler(InviteError, invite_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)

    logger.info(f"Dev Mode: {'ENABLED' if settings.dev_mode else 'disabled'}")
    logger.info(f"Image Generation Provider: {settings.image_provider or 'NOT SET'}")
    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
