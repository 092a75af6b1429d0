"""
Operator commands for the storefront database.

    python manage.py create-admin --email admin@example.com --phone 09120000000 --password secret
    python manage.py list-admins
    python manage.py seed
"""
import argparse
import logging
import sys

import accounts
import catalog
import database
from errors import ShopError
from schemas import RegisterRequest


def create_admin(db, email, phone, password, first_name="مدیر", last_name="سیستم") -> dict:
    payload = RegisterRequest(
        first_name=first_name, last_name=last_name, email=email, phone=phone, password=password
    )
    return accounts.register_user(db, payload, is_admin=True)


def build_parser():
    parser = argparse.ArgumentParser(description="Storefront maintenance commands")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="create an administrator account")
    create.add_argument("--email", required=True)
    create.add_argument("--phone", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--first-name", default="مدیر")
    create.add_argument("--last-name", default="سیستم")

    sub.add_parser("list-admins", help="list administrator accounts")
    sub.add_parser("seed", help="insert the sample catalog")
    return parser


def run(argv=None, db=None) -> int:
    args = build_parser().parse_args(argv)
    db = db if db is not None else database.connect()

    try:
        if args.command == "create-admin":
            admin = create_admin(db, args.email, args.phone, args.password, args.first_name, args.last_name)
            print(f"Admin created: {admin['email']}")
        elif args.command == "list-admins":
            admins = accounts.list_admins(db)
            for admin in admins:
                state = "active" if admin.get("is_active", True) else "inactive"
                print(f"{admin['email']}\t{admin['first_name']} {admin['last_name']}\t{state}")
            if not admins:
                print("No admin accounts")
        elif args.command == "seed":
            inserted = catalog.seed_products(db)
            print(f"Inserted {inserted} product(s)")
    except ShopError as e:
        print(e.message, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        code = run()
    finally:
        database.close()
    sys.exit(code)
