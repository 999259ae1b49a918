from shop_bookings.db.models import BookingStatus


def test_manager_confirms_pending_booking_and_customer_is_notified(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"])

    response = client.patch(f"/bookings/{booking.id}/confirm", headers=auth(shop_world["manager"]))

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["confirmed_at"] is not None
    assert data["version"] == 2
    assert response.headers["ETag"] == '"2"'
    assert [(n.type.value, n.recipient_user_id) for n in notifier.sent] == [
        ("booking_confirmed", shop_world["customer"].id)
    ]
    assert notifier.sent[0].shop_name == "Fade Factory"
    assert notifier.sent[0].service_name == "Haircut, Beard trim"


def test_second_confirm_fails_with_precondition_error(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"])
    headers = auth(shop_world["owner"])

    first = client.patch(f"/bookings/{booking.id}/confirm", headers=headers)
    second = client.patch(f"/bookings/{booking.id}/confirm", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "transition_rejected"
    assert len(notifier.sent) == 1


def test_confirming_completed_booking_is_rejected_and_status_kept(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.COMPLETED)

    response = client.patch(f"/bookings/{booking.id}/confirm", headers=auth(shop_world["manager"]))

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "transition_rejected"
    current = client.get(f"/bookings/{booking.id}", headers=auth(shop_world["manager"])).json()
    assert current["status"] == "completed"
    assert current["version"] == 1
    assert notifier.sent == []


def test_manager_cancel_with_blank_reason_is_rejected_before_any_write(
    client, auth, notifier, shop_world, make_booking
):
    booking = make_booking(shop_world["shop"], shop_world["customer"], customer_notes="Please use clippers")

    for body in ({"reason": ""}, {"reason": "   "}, {}):
        response = client.patch(
            f"/bookings/{booking.id}/cancel",
            headers=auth(shop_world["manager"]),
            json=body,
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "reason_required"

    current = client.get(f"/bookings/{booking.id}", headers=auth(shop_world["customer"])).json()
    assert current["status"] == "pending"
    assert current["customer_notes"] == "Please use clippers"
    assert current["version"] == 1
    assert notifier.sent == []


def test_manager_cancel_with_reason_stores_it_in_customer_notes(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(
        shop_world["shop"],
        shop_world["customer"],
        status=BookingStatus.CONFIRMED,
        customer_notes="Please use clippers",
    )

    response = client.patch(
        f"/bookings/{booking.id}/cancel",
        headers=auth(shop_world["manager"]),
        json={"reason": "  Barber is sick  "},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["customer_notes"] == "Barber is sick"
    assert data["cancelled_at"] is not None
    assert notifier.sent[0].type.value == "booking_cancelled"
    assert notifier.sent[0].recipient_user_id == shop_world["customer"].id
    assert notifier.sent[0].reason == "Barber is sick"


def test_customer_cancel_without_reason_uses_default(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.CONFIRMED)

    response = client.patch(f"/bookings/{booking.id}/cancel", headers=auth(shop_world["customer"]))

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["customer_notes"] == "Cancelled by customer"
    # No provider assigned, so the shop's managing staff hear about it.
    assert sorted(n.recipient_user_id for n in notifier.sent) == sorted(
        [shop_world["owner"].id, shop_world["manager"].id]
    )


def test_customer_cancel_notifies_assigned_provider(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"], provider=shop_world["barber"])

    response = client.patch(
        f"/bookings/{booking.id}/cancel",
        headers=auth(shop_world["customer"]),
        json={"reason": "Running late"},
    )

    assert response.status_code == 200
    assert response.json()["customer_notes"] == "Running late"
    assert [n.recipient_user_id for n in notifier.sent] == [shop_world["barber"].id]


def test_cancelling_cancelled_booking_is_rejected(client, auth, shop_world, make_booking):
    booking = make_booking(
        shop_world["shop"],
        shop_world["customer"],
        status=BookingStatus.CANCELLED,
        customer_notes="Cancelled by customer",
    )

    response = client.patch(f"/bookings/{booking.id}/cancel", headers=auth(shop_world["customer"]))

    assert response.status_code == 409


def test_barber_cannot_change_booking_status(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"], provider=shop_world["barber"])
    headers = auth(shop_world["barber"])

    confirm = client.patch(f"/bookings/{booking.id}/confirm", headers=headers)
    cancel = client.patch(f"/bookings/{booking.id}/cancel", headers=headers, json={"reason": "Busy"})
    read = client.get(f"/bookings/{booking.id}", headers=headers)

    assert confirm.status_code == 403
    assert confirm.json()["error"]["code"] == "not_authorized"
    assert cancel.status_code == 403
    assert read.status_code == 200
    assert notifier.sent == []


def test_customer_cannot_confirm_own_booking(client, auth, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"])

    response = client.patch(f"/bookings/{booking.id}/confirm", headers=auth(shop_world["customer"]))

    assert response.status_code == 403


def test_unrelated_user_sees_not_found(client, auth, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"])
    headers = auth(shop_world["other_customer"])

    assert client.get(f"/bookings/{booking.id}", headers=headers).status_code == 404
    assert client.patch(f"/bookings/{booking.id}/cancel", headers=headers).status_code == 404


def test_super_admin_can_confirm_any_booking(client, auth, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"])

    response = client.patch(f"/bookings/{booking.id}/confirm", headers=auth(shop_world["super_admin"]))

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"


def test_reject_prefixes_reason_and_requires_pending(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"])
    headers = auth(shop_world["manager"])

    blank = client.patch(f"/bookings/{booking.id}/reject", headers=headers, json={"reason": " "})
    rejected = client.patch(f"/bookings/{booking.id}/reject", headers=headers, json={"reason": "Fully booked"})
    again = client.patch(f"/bookings/{booking.id}/reject", headers=headers, json={"reason": "Fully booked"})

    assert blank.status_code == 422
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "cancelled"
    assert rejected.json()["customer_notes"] == "[REJECTED] Fully booked"
    assert again.status_code == 409
    assert len(notifier.sent) == 1


def test_complete_and_no_show_are_manager_actions(client, auth, notifier, shop_world, make_booking):
    confirmed = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.CONFIRMED)
    pending = make_booking(shop_world["shop"], shop_world["customer"])

    completed = client.patch(f"/bookings/{confirmed.id}/complete", headers=auth(shop_world["manager"]))
    no_show = client.patch(f"/bookings/{pending.id}/no-show", headers=auth(shop_world["owner"]))
    by_customer = client.patch(f"/bookings/{pending.id}/no-show", headers=auth(shop_world["customer"]))

    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["completed_by"] == shop_world["manager"].id
    assert no_show.status_code == 200
    assert no_show.json()["status"] == "no_show"
    assert by_customer.status_code == 403
    assert [n.type.value for n in notifier.sent] == ["booking_completed", "booking_no_show"]


def test_customer_reschedule_moves_slot_and_needs_reconfirmation(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.CONFIRMED)

    response = client.patch(
        f"/bookings/{booking.id}/reschedule",
        headers=auth(shop_world["customer"]),
        json={"appointment_date": "2030-06-01", "appointment_time": "15:00:00"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert data["appointment_date"] == "2030-06-01"
    assert data["appointment_time"] == "15:00:00"
    assert data["total_amount"] == "35.50"
    assert data["confirmed_at"] is None
    assert notifier.sent[0].type.value == "booking_rescheduled"


def test_reschedule_rejected_for_terminal_booking_and_for_staff(client, auth, shop_world, make_booking):
    completed = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.COMPLETED)
    pending = make_booking(shop_world["shop"], shop_world["customer"])
    body = {"appointment_date": "2030-06-01", "appointment_time": "15:00:00"}

    terminal = client.patch(f"/bookings/{completed.id}/reschedule", headers=auth(shop_world["customer"]), json=body)
    by_manager = client.patch(f"/bookings/{pending.id}/reschedule", headers=auth(shop_world["manager"]), json=body)

    assert terminal.status_code == 409
    assert by_manager.status_code == 403


def test_stale_if_match_version_is_rejected(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"])

    client.patch(
        f"/bookings/{booking.id}/reschedule",
        headers=auth(shop_world["customer"]),
        json={"appointment_date": "2030-06-02", "appointment_time": "09:00:00"},
    )
    notifier.reset()

    stale = client.patch(
        f"/bookings/{booking.id}/confirm",
        headers={**auth(shop_world["manager"]), "If-Match": '"1"'},
    )
    fresh = client.patch(
        f"/bookings/{booking.id}/confirm",
        headers={**auth(shop_world["manager"]), "If-Match": '"2"'},
    )

    assert stale.status_code == 409
    assert stale.json()["error"]["code"] == "version_conflict"
    assert fresh.status_code == 200
    assert fresh.json()["version"] == 3
    assert len(notifier.sent) == 1


def test_malformed_if_match_header_is_bad_request(client, auth, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"])

    response = client.patch(
        f"/bookings/{booking.id}/confirm",
        headers={**auth(shop_world["manager"]), "If-Match": "abc"},
    )

    assert response.status_code == 400


def test_rating_completed_booking_is_one_shot(client, auth, shop_world, make_booking):
    booking = make_booking(
        shop_world["shop"],
        shop_world["customer"],
        status=BookingStatus.COMPLETED,
        provider=shop_world["barber"],
    )
    headers = auth(shop_world["customer"])
    body = {"rating": 5, "provider_rating": 4, "review_text": "Sharp fade"}

    first = client.post(f"/bookings/{booking.id}/review", headers=headers, json=body)
    second = client.post(f"/bookings/{booking.id}/review", headers=headers, json=body)
    after = client.get(f"/bookings/{booking.id}", headers=headers).json()

    assert first.status_code == 201
    assert first.json()["rating"] == 5
    assert first.json()["provider_id"] == shop_world["barber"].id
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "already_rated"
    assert after["status"] == "completed"


def test_rating_is_not_possible_for_cancelled_booking(client, auth, shop_world, make_booking):
    booking = make_booking(
        shop_world["shop"],
        shop_world["customer"],
        status=BookingStatus.CANCELLED,
        customer_notes="Cancelled by customer",
    )

    response = client.post(
        f"/bookings/{booking.id}/review",
        headers=auth(shop_world["customer"]),
        json={"rating": 3},
    )

    assert response.status_code == 409


def test_manager_cannot_rate(client, auth, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.COMPLETED)

    response = client.post(
        f"/bookings/{booking.id}/review",
        headers=auth(shop_world["manager"]),
        json={"rating": 3},
    )

    assert response.status_code == 403


def test_actions_endpoint_offers_rating_only_for_completed_unrated_booking(client, auth, shop_world, make_booking):
    completed = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.COMPLETED)
    cancelled = make_booking(
        shop_world["shop"],
        shop_world["customer"],
        status=BookingStatus.CANCELLED,
        customer_notes="Cancelled by customer",
    )
    headers = auth(shop_world["customer"])

    before = client.get(f"/bookings/{completed.id}/actions", headers=headers).json()
    client.post(f"/bookings/{completed.id}/review", headers=headers, json={"rating": 4})
    after = client.get(f"/bookings/{completed.id}/actions", headers=headers).json()
    on_cancelled = client.get(f"/bookings/{cancelled.id}/actions", headers=headers).json()

    assert before == {"booking_id": completed.id, "status": "completed", "role": "customer", "actions": ["rate"]}
    assert after["actions"] == []
    assert on_cancelled["actions"] == []


def test_actions_endpoint_for_staff(client, auth, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.CONFIRMED)

    manager = client.get(f"/bookings/{booking.id}/actions", headers=auth(shop_world["manager"])).json()
    barber = client.get(f"/bookings/{booking.id}/actions", headers=auth(shop_world["barber"])).json()

    assert manager["role"] == "manager"
    assert manager["actions"] == ["cancel", "complete", "mark_no_show"]
    assert barber["role"] == "provider"
    assert barber["actions"] == []


def test_missing_booking_returns_unified_error(client, auth, shop_world):
    response = client.patch("/bookings/9999/confirm", headers=auth(shop_world["manager"]))

    assert response.status_code == 404
    body = response.json()
    assert body["error"]["code"] == "booking_not_found"
    assert "request_id" in body


def test_reschedule_into_past_is_rejected(client, auth, notifier, shop_world, make_booking):
    booking = make_booking(shop_world["shop"], shop_world["customer"], status=BookingStatus.CONFIRMED)

    response = client.patch(
        f"/bookings/{booking.id}/reschedule",
        headers=auth(shop_world["customer"]),
        json={"appointment_date": "2001-01-01", "appointment_time": "09:00:00"},
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "appointment_in_past"
    current = client.get(f"/bookings/{booking.id}", headers=auth(shop_world["customer"])).json()
    assert current["status"] == "confirmed"
    assert current["appointment_date"] == "2030-05-14"
    assert current["version"] == 1
    assert notifier.sent == []
