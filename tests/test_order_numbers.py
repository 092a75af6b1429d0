import re

import orders

ORDER_NUMBER = re.compile(r"^ORD-\d+-\d{4,}$")


def test_order_numbers_are_unique_and_well_formed(db):
    numbers = [orders.next_order_number(db) for _ in range(200)]

    assert len(set(numbers)) == 200
    assert all(ORDER_NUMBER.match(n) for n in numbers)


def test_sequence_does_not_depend_on_order_count(db):
    first = orders.next_order_number(db)
    db["order"].delete_many({})
    second = orders.next_order_number(db)

    assert int(second.rsplit("-", 1)[1]) == int(first.rsplit("-", 1)[1]) + 1


def test_placed_orders_get_distinct_numbers(client, db, user, make_product, place_order):
    product = make_product(stock=20)

    placed = [place_order(user, (product, 1)) for _ in range(5)]

    numbers = {o["order_number"] for o in placed}
    assert len(numbers) == 5
    assert db["counter"].find_one({"_id": orders.ORDER_NUMBER_COUNTER})["seq"] == 5
