#!/usr/bin/env python3
from dotenv import load_dotenv

load_dotenv()

from bms_backend import create_app  # noqa: E402

app = create_app()
