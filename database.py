import os
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument
from config import ROOT_DIR
from dotenv import load_dotenv

load_dotenv(ROOT_DIR / '.env')

client = AsyncIOMotorClient(os.environ['MONGO_URL'])
db = client[os.environ['DB_NAME']]


async def next_sequence(name: str) -> int:
    """Atomically increment and return the named counter."""
    doc = await db.counters.find_one_and_update(
        {"name": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return doc["seq"]
