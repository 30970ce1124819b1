"""Service layer."""

import os
from .models import User as Account, Base


def create_user(name):
    return Account(name)


async def load_users(path):
    def parse(line):
        return line.strip()

    with open(os.path.join(path, "users.txt")) as f:
        return [create_user(parse(line)) for line in f]
