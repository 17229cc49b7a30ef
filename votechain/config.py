# votechain/config.py
# Central place for connection settings and chain constants
import os
from dotenv import load_dotenv

load_dotenv()

# --- Database ---
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "voting")
VOTES_COLLECTION = os.getenv("VOTES_COLLECTION", "votes")
BLOCKS_COLLECTION = os.getenv("BLOCKS_COLLECTION", "blocks")

# --- Chain ---
# prev_hash carried by the genesis block (index 0)
GENESIS_PREV_HASH = "0"

# How many times a block append re-reads the tip after a duplicate index
APPEND_MAX_RETRIES = int(os.getenv("APPEND_MAX_RETRIES", "5"))

# Recompute the tip's hash before linking a new block onto it
VERIFY_TIP = os.getenv("VERIFY_TIP", "1") == "1"

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- HTTP ---
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]
