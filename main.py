import importlib
import json

from steps import open_store

if __name__ == "__main__":
    with open("config.json", "r") as f:
        config = json.load(f)
    clear_parcels = config.get("clear_parcels", False)
    load_parcels = config.get("load_parcels", False)
    build_neighbors = config.get("build_neighbors", False)
    seed_comments = config.get("seed_comments_enabled", False)

    print(f"Configuration loaded: {config}")

    if clear_parcels:
        deleted = open_store(config).clear_parcels()
        print(f"Cleared {deleted} parcels with their comments and neighbor lists.")

    if load_parcels:
        totals = importlib.import_module("steps.01_load_parcels").run(config)
        print(
            f"Loading parcels completed: {totals['created']} created, "
            f"{totals['skipped']} skipped, {totals['errors']} errors."
        )

    if build_neighbors:
        report = importlib.import_module("steps.02_build_neighbors").run(config)
        print(
            f"Neighbor build completed: {report.created} created, "
            f"{report.updated} updated, {report.failed} failed."
        )

    if seed_comments:
        created = importlib.import_module("steps.03_seed_comments").run(config)
        print(f"Seeding comments completed: {created} comments created.")
