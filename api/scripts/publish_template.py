import argparse

from sqlmodel import Session

from baa import templates
from baa.db import engine, init_db

parser = argparse.ArgumentParser(description="Publish a new BAA template version")
parser.add_argument("body_file", help="path to the template text (with {{PLACEHOLDER}} slots)")
parser.add_argument("--name", default=templates.DEFAULT_TEMPLATE_NAME)
parser.add_argument("--version", type=int, default=None)
args = parser.parse_args()

init_db()
with open(args.body_file, encoding="utf-8") as fh:
    body = fh.read()

with Session(engine) as session:
    template = templates.publish(session, body, name=args.name, version=args.version)
    print(f"Published {template.name} v{template.version} sha256={template.sha256}")
