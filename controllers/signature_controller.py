import re
import time
import base64
import binascii
import logging
from fastapi import HTTPException

from database import db
from models.auth import User
from models.efiling import UserSignature, UserSignatureCreate
from core.uploads import store_bytes, public_link, remove_stored_file
from config import SIGNATURE_DIR, MAX_IMAGE_SIZE

logger = logging.getLogger(__name__)

MAX_SIGNATURES_PER_USER = 3
PNG_PREFIX = re.compile(r"^data:image/png;base64,")
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def signature_folder(user_name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", user_name or "user").lower()


def decode_png(signature_data: str) -> bytes:
    try:
        data = base64.b64decode(PNG_PREFIX.sub("", signature_data or ""), validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Signature data must be a base64 encoded PNG")
    if not data.startswith(PNG_MAGIC):
        raise HTTPException(status_code=400, detail="Signature data must be a base64 encoded PNG")
    if len(data) > MAX_IMAGE_SIZE:
        raise HTTPException(status_code=400, detail="Signature image is too large")
    return data


async def get_signatures(current_user: User) -> list:
    return await db.efiling_user_signatures.find(
        {"user_id": current_user.id}, {"_id": 0}
    ).sort("created_at", -1).to_list(MAX_SIGNATURES_PER_USER * 2)


async def save_signature(data: UserSignatureCreate, current_user: User) -> dict:
    signature_type = re.sub(r"[^a-z0-9_]", "", (data.signature_type or "").lower())
    if not signature_type:
        raise HTTPException(status_code=400, detail="Signature type is required")
    image = decode_png(data.signature_data)

    existing = await db.efiling_user_signatures.find_one(
        {"user_id": current_user.id, "signature_type": signature_type}, {"_id": 0}
    )
    if not existing:
        count = await db.efiling_user_signatures.count_documents({"user_id": current_user.id})
        if count >= MAX_SIGNATURES_PER_USER:
            raise HTTPException(status_code=400, detail="Maximum 3 signatures allowed per user. Please update an existing signature.")

    filename = f"{signature_type}_{int(time.time() * 1000)}.png"
    relative = store_bytes(f"{SIGNATURE_DIR}/{signature_folder(current_user.name)}", filename, image)
    signature = UserSignature(
        user_id=current_user.id,
        signature_name=f"{signature_type}_signature",
        signature_type=signature_type,
        file_name=filename,
        file_size=len(image),
        file_url=public_link(relative),
    )

    # newest signature is the active one
    await db.efiling_user_signatures.update_many({"user_id": current_user.id}, {"$set": {"is_active": False}})
    if existing:
        if existing["file_url"] != signature.file_url:
            remove_stored_file(existing["file_url"])
        payload = signature.model_dump()
        payload["id"] = existing["id"]
        await db.efiling_user_signatures.replace_one({"id": existing["id"]}, payload)
        logger.info(f"Replaced {signature_type} signature for user {current_user.id}")
        return {"message": "Signature saved successfully", "signature": payload}
    await db.efiling_user_signatures.insert_one(signature.model_dump())
    return {"message": "Signature saved successfully", "signature": signature.model_dump()}


async def delete_signature(signature_id: str, current_user: User) -> dict:
    signature = await db.efiling_user_signatures.find_one(
        {"id": signature_id, "user_id": current_user.id}, {"_id": 0}
    )
    if not signature:
        raise HTTPException(status_code=404, detail="Signature not found")
    await db.efiling_user_signatures.delete_one({"id": signature_id})
    remove_stored_file(signature["file_url"])
    if signature.get("is_active"):
        latest = await db.efiling_user_signatures.find({"user_id": current_user.id}, {"_id": 0}) \
            .sort("created_at", -1).limit(1).to_list(1)
        if latest:
            await db.efiling_user_signatures.update_one({"id": latest[0]["id"]}, {"$set": {"is_active": True}})
    return {"message": "Signature deleted successfully"}
