#!/usr/bin/env python3
"""
Reference data management utility for the Opal fare estimator.

Usage:
    python manage_db.py init           - Import the bundled networks if the store is empty
    python manage_db.py show           - Show all stored networks
    python manage_db.py import <path>  - Import networks from a JSON file
    python manage_db.py reset          - Replace stored networks with the bundled ones
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from opal_fare.database import DatabaseManager
from opal_fare.reference import ReferenceDataset


def init_database():
    """Initialize the store with the bundled networks."""
    print("Initializing reference data store...")
    db = DatabaseManager()
    imported = db.init_default_networks()
    if imported:
        print(f"Imported {imported} bundled networks.")
    else:
        print("Store already holds networks, nothing imported.")
    show_networks()


def show_networks():
    """Display all stored networks."""
    db = DatabaseManager()
    summaries = db.get_network_summaries()

    print("\n" + "="*60)
    print("FARE NETWORKS IN REFERENCE DATA STORE")
    print("="*60)
    print(f"{'Valid from':<12} {'Valid to':<12} {'Timezone':<20} {'Fare types'}")
    print("-"*60)

    for summary in summaries:
        print(
            f"{summary.valid_from:<12} {summary.valid_to:<12} "
            f"{summary.timezone:<20} {', '.join(summary.fare_types)}"
        )

    print("-"*60)
    print(f"Total networks: {len(summaries)}")
    print(f"Store: {db.database_url}")
    print("="*60)


def import_networks():
    """Import networks from the JSON file given on the command line."""
    if len(sys.argv) < 3:
        print("Missing path to a networks JSON file")
        print(__doc__)
        return

    path = sys.argv[2]
    try:
        dataset = ReferenceDataset.from_file(path)
    except (OSError, ValueError) as e:
        print(f"Could not read networks from {path}: {e}")
        return

    db = DatabaseManager()
    count = db.import_networks(dataset, description=f"Imported from {os.path.basename(path)}")
    print(f"✓ Imported {count} networks from {path}")
    show_networks()


def reset_database():
    """Reset the store to the bundled networks."""
    confirm = input("Are you sure you want to replace all stored networks with the bundled ones? (yes/no): ")

    if confirm.lower() == 'yes':
        db = DatabaseManager()
        deleted = db.clear_networks()
        print(f"Deleted {deleted} networks.")

        init_database()
        print("Reference data reset to defaults!")
    else:
        print("Reset cancelled.")


def main():
    """Main entry point."""
    if len(sys.argv) < 2:
        print(__doc__)
        return

    command = sys.argv[1].lower()

    commands = {
        'init': init_database,
        'show': show_networks,
        'import': import_networks,
        'reset': reset_database
    }

    if command in commands:
        commands[command]()
    else:
        print(f"Unknown command: {command}")
        print(__doc__)


if __name__ == "__main__":
    main()
