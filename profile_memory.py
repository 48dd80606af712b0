from memory_profiler import profile
from app.main import app
from fastapi.testclient import TestClient

# Create a test client for the FastAPI app
client = TestClient(app)


@profile
def run_scenario():
    """
    Exercise the public read endpoints while tracking memory.
    Nothing is asserted; it's only for profiling the venue cache and listings.
    """
    client.get("/health")
    for _ in range(50):
        client.get("/venues/")                        # served from the venue cache
    client.get("/venues/?search=court&category=sports")
    client.get("/facilities/fac-1")
    client.get("/facilities/fac-1/timeslots?date=2025-01-10")
    client.get("/facilities/fac-1/feedback")


if __name__ == "__main__":
    run_scenario()
