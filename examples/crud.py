"""Simple CRUD walkthrough against a running database.

Reads FAUNA_SECRET (and optionally FAUNA_ENDPOINT) from the environment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fqlclient import Client, Document, Int32, NullDocument, QueryOptions, ServiceError, fql, wire_field


@dataclass
class Product:
    name: str = wire_field("name")
    quantity: Int32 = wire_field("quantity")
    description: Optional[str] = wire_field("description", default=None)


def main() -> None:
    with Client.from_env() as client:
        created = client.query(
            fql("Product.create(${product})", product=Product("pizza", 10)),
            options=QueryOptions(query_tags={"example": "crud"}),
        ).data
        assert isinstance(created, Document)
        print("Created product:", created.id)

        fetched = client.query(fql("Product.byId(${id})", id=created.id), Product).data
        print("Fetched product:", fetched)

        client.query(fql("Product.byId(${id})!.update({ quantity: ${qty} })", id=created.id, qty=9))
        client.query(fql("Product.byId(${id})!.delete()", id=created.id))

        missing = client.query(fql("Product.byId(${id})", id=created.id)).data
        if isinstance(missing, NullDocument):
            print("Deleted product:", missing.ref, missing.cause)

        try:
            client.query(fql("Product.all("))
        except ServiceError as err:
            print("Service error:", type(err).__name__, err.code)


if __name__ == "__main__":
    main()
