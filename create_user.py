# create_user.py
"""
Bootstrap an account (the first admin, or any role) from the shell:

    python create_user.py admin@example.com 'S3cret!' "Site Admin" --role admin
"""
import argparse
import logging

from database import SessionLocal
from exceptions import ConflictError
from models import Role
from services.users import create_user

logger = logging.getLogger("create_user")


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Create a Buildline user profile")
    p.add_argument("email")
    p.add_argument("password")
    p.add_argument("full_name")
    p.add_argument("--role", choices=[r.value for r in Role], default=Role.ADMIN.value)
    p.add_argument("--phone")
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    db = SessionLocal()
    try:
        u = create_user(db, email=args.email, password=args.password, full_name=args.full_name,
                        role=Role(args.role), phone=args.phone)
    except ConflictError as e:
        logger.error(e.message)
        return 1
    finally:
        db.close()
    logger.info("created %s (%s) id=%s", u.email, u.role, u.id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
