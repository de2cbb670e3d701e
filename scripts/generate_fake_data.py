"""Generate fake event data for testing and development.

This module creates a synthetic data source for the SimRec engine: a user
population, an item population with categories, a stream of view, like and
dislike events, and an engine config that trains one algorithm per signal.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_events
        events = generate_fake_events(num_users=100, num_items=200)
"""

import json
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import pandas as pd

# Default configuration constants
DEFAULT_NUM_USERS = 50
DEFAULT_NUM_ITEMS = 100
DEFAULT_NUM_EVENTS = 2000
DEFAULT_DAYS_BACK = 90
DEFAULT_CATEGORIES = ["books", "music", "movies", "games", "toys"]

# Share of each event type in the generated stream
EVENT_WEIGHTS = {"view": 0.7, "like": 0.2, "dislike": 0.1}


def generate_fake_users(num_users: int = DEFAULT_NUM_USERS) -> pd.DataFrame:
    """User population with ids u1..uN."""
    return pd.DataFrame({"user_id": [f"u{i}" for i in range(1, num_users + 1)]})


def generate_fake_items(
    num_items: int = DEFAULT_NUM_ITEMS,
    categories: Optional[list] = None,
    random_seed: Optional[int] = None,
) -> pd.DataFrame:
    """Item population with ids i1..iN and one or two categories each."""
    rng = random.Random(random_seed)
    categories = categories or DEFAULT_CATEGORIES

    rows = []
    for i in range(1, num_items + 1):
        item_categories = rng.sample(categories, k=rng.randint(1, 2))
        rows.append({"item_id": f"i{i}", "categories": "|".join(item_categories)})

    return pd.DataFrame(rows)


def generate_fake_events(
    num_users: int = DEFAULT_NUM_USERS,
    num_items: int = DEFAULT_NUM_ITEMS,
    num_events: int = DEFAULT_NUM_EVENTS,
    end_date: Optional[datetime] = None,
    random_seed: Optional[int] = None,
) -> pd.DataFrame:
    """Generate a synthetic event stream.

    Each user favours a contiguous block of items, so the trained models have
    some structure to find. Likes fall mostly inside the block and dislikes
    mostly outside it.

    Args:
        num_users: Number of users (ids u1..uN). Must be positive.
        num_items: Number of items (ids i1..iN). Must be positive.
        num_events: Total number of events to generate. Must be positive.
        end_date: Latest event time. If None, defaults to now.
        random_seed: Seed for reproducible output.

    Returns:
        A pandas DataFrame with columns event, entity_id, target_entity_id
        and event_time (epoch milliseconds), sorted by event_time.

    Raises:
        ValueError: If any numeric parameter is non-positive.
    """
    if num_users <= 0 or num_items <= 0 or num_events <= 0:
        raise ValueError("num_users, num_items, and num_events must be positive")

    rng = random.Random(random_seed)
    end_date = end_date or datetime.now()
    start_ms = int((end_date - timedelta(days=DEFAULT_DAYS_BACK)).timestamp() * 1000)
    end_ms = int(end_date.timestamp() * 1000)

    block = max(1, num_items // 5)
    event_names = list(EVENT_WEIGHTS)
    weights = list(EVENT_WEIGHTS.values())

    events = []
    for _ in range(num_events):
        user = rng.randint(1, num_users)
        event = rng.choices(event_names, weights=weights)[0]

        block_start = (user * block) % num_items
        in_block = rng.random() < (0.2 if event == "dislike" else 0.8)
        if in_block:
            item = block_start + rng.randrange(block)
        else:
            item = rng.randrange(num_items)

        events.append({
            "event": event,
            "entity_id": f"u{user}",
            "target_entity_id": f"i{item % num_items + 1}",
            "event_time": rng.randint(start_ms, end_ms),
        })

    df = pd.DataFrame(events)
    return df.sort_values("event_time").reset_index(drop=True)


def engine_config(seed: int = 3) -> dict:
    """Engine config training a view-based and a like-based algorithm."""
    params = {"rank": 10, "iterations": 10, "regularization": 0.01, "seed": seed}
    return {
        "datasource": {
            "events_path": "events.csv",
            "users_path": "users.csv",
            "items_path": "items.csv",
        },
        "algorithms": [
            {"name": "als_view", "strategy": "frequency", "params": params},
            {"name": "als_like", "strategy": "signed", "params": params},
        ],
        "model_dir": "../models",
    }


def main() -> None:
    """Main entry point for the data generation script.

    Writes users.csv, items.csv, events.csv and engine.json to data/.
    """
    print(f"Generating {DEFAULT_NUM_EVENTS} fake events...")
    print(f"Users: {DEFAULT_NUM_USERS}, Items: {DEFAULT_NUM_ITEMS}")

    try:
        users = generate_fake_users()
        items = generate_fake_items(random_seed=42)
        events = generate_fake_events(random_seed=42)
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    data_dir = Path(__file__).parent.parent / "data"
    data_dir.mkdir(exist_ok=True)

    users.to_csv(data_dir / "users.csv", index=False)
    items.to_csv(data_dir / "items.csv", index=False)
    events.to_csv(data_dir / "events.csv", index=False)
    (data_dir / "engine.json").write_text(json.dumps(engine_config(), indent=2))

    print(f"\nData generated successfully!")
    print(f"Saved to: {data_dir}")
    print(f"\nEvent preview:")
    print(events.head(10))
    print(f"\nData summary:")
    print(f"  Events by type: {events['event'].value_counts().to_dict()}")
    print(f"  Unique users: {events['entity_id'].nunique()}")
    print(f"  Unique items: {events['target_entity_id'].nunique()}")


if __name__ == "__main__":
    main()
