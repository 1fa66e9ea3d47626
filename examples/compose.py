"""Query composition walkthrough: build, nest and encode queries without a server."""

from __future__ import annotations

import json

from fqlclient import decode_query, encode_query, fql


def main() -> None:
    product = fql("Product.byName(${name}).first()", {"name": "pizza"})
    order = fql(
        "let p = ${product}\nOrder.create({ product: p, quantity: ${qty} })",
        product=product,
        qty=2,
    )

    wire = encode_query(order)
    print("Encoded query:")
    print(json.dumps(wire, indent=2))

    print("Round trip equal:", decode_query(wire) == order)


if __name__ == "__main__":
    main()
