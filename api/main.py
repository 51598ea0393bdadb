from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
import logging
import sys, os

sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))
import db
from logic import DAYS, Day, HabitStore

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# -------------------------------
# STORE
# -------------------------------
def build_backend():
    """Configured key-value backend, or an in-memory one if it cannot be set up."""
    try:
        return db.build_store()
    except db.PersistenceUnavailable as e:
        logger.error("Habit store backend %s unavailable, habits will not be saved: %s",
                     db.HABIT_STORE_BACKEND, e)
        return db.MemoryStore()


# Writes run as scheduler jobs, one at a time; reads go straight to the backend.
scheduler = BackgroundScheduler(executors={"default": ThreadPoolExecutor(1)})
writer = db.BackgroundWriter(build_backend(), scheduler)
store = HabitStore(writer)


def get_store() -> HabitStore:
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler.start()
    store.initialize()
    logger.info("Habit API ready (backend: %s)", db.HABIT_STORE_BACKEND)
    yield
    scheduler.shutdown(wait=True)
    # Writes the scheduler did not get to before stopping.
    writer.flush()


app = FastAPI(title="Weekly Habit Tracker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:8501", "http://127.0.0.1:8501"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -------------------------------
# MODELS
# -------------------------------
class HabitNameModel(BaseModel):
    name: str

class HabitToggleModel(BaseModel):
    name: str
    day: Day


def snapshot(s: HabitStore):
    return s.to_records()

# -------------------------------
# HABIT ROUTES
# -------------------------------
@app.get("/days")
def list_days():
    return {"days": list(DAYS)}

@app.post("/habit/list")
def list_habits(s: HabitStore = Depends(get_store)):
    return {"success": True, "habits": snapshot(s), "days": list(DAYS)}

@app.post("/habit/add")
def add_habit(habit: HabitNameModel, s: HabitStore = Depends(get_store)):
    if s.add_habit(habit.name):
        return {
            "success": True,
            "message": f"Habit '{habit.name.strip()}' added successfully.",
            "habits": snapshot(s),
        }
    return {
        "success": False,
        "error": "Habit not added (empty name, duplicate, or limit reached).",
        "habits": snapshot(s),
    }

@app.post("/habit/remove")
def remove_habit(habit: HabitNameModel, s: HabitStore = Depends(get_store)):
    removed = s.delete_habit(habit.name)
    return {"success": True, "removed": removed, "habits": snapshot(s)}

@app.post("/habit/toggle")
def toggle_habit(h: HabitToggleModel, s: HabitStore = Depends(get_store)):
    completed = s.toggle_completion(h.name, h.day)
    if completed is None:
        return {"success": False, "error": f"No habit named '{h.name}'", "habits": snapshot(s)}
    return {
        "success": True,
        "name": h.name,
        "day": h.day.value,
        "completed": completed,
        "habits": snapshot(s),
    }

@app.post("/habit/weekly-summary")
def weekly_summary(s: HabitStore = Depends(get_store)):
    return {"success": True, **s.weekly_summary()}

@app.get("/")
def root():
    return {"message": "Weekly Habit Tracker API is running", "status": "healthy"}

# Health check endpoint
@app.get("/health")
def health_check():
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}

# For running with uvicorn directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
