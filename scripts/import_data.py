import json
import sys
from pathlib import Path

from recipeshare import crud
from recipeshare.db import SessionLocal, init_db
from recipeshare.exceptions import ValidationFailed
from recipeshare.validation import validate_recipe

SEED_FILE = Path(__file__).resolve().parents[1] / 'data' / 'recipes.json'


def read_seed(path):
    # entries carry title, instruction and an optional ingredients list
    path = Path(path)
    if not path.exists():
        return []
    with path.open('r', encoding='utf-8') as f:
        return json.load(f)


def main(username, path=SEED_FILE):
    init_db()
    data = read_seed(path)
    if not data:
        print(f'{path} not found or empty')
        return
    db = SessionLocal()
    try:
        author = crud.get_user_by_username(db, username)
        if author is None:
            print(f'no user named {username!r}, register first')
            return
        existing = {r.title for r in crud.list_recipes(db)}
        added = 0
        for r in data:
            if r.get('title') in existing:
                continue
            try:
                payload = validate_recipe(dict(r))
            except ValidationFailed as e:
                print(f'skipping {r.get("title")!r}: {e.message}')
                continue
            crud.create_recipe(db, payload, author.id, [])
            added += 1
    finally:
        db.close()
    print(f'Imported {added} recipes')


if __name__ == '__main__':
    if len(sys.argv) != 2:
        print('usage: python scripts/import_data.py <username>')
        sys.exit(1)
    main(sys.argv[1])
