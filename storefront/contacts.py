# Standard Library
import logging

# Django
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.template.loader import render_to_string
from django.utils.html import strip_tags

# Django REST Framework
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

# Local
from .models import Contact, Subscriber
from .permissions import HasCapability
from .serializers import ContactSerializer, SubscriberSerializer
from .utilities import (
    _options,
    error_response,
    format_datetime,
    not_found_response,
    paginate,
    success_response,
    validation_error_response,
)

logger = logging.getLogger(__name__)


def _serialize_contact(contact):
    return {
        "id": contact.id,
        "name": contact.name,
        "email": contact.email,
        "phone": contact.phone,
        "subject": contact.subject,
        "message": contact.message,
        "created_at": format_datetime(contact.created_at),
    }


def send_contact_mail(contact):
    """
    Forward a contact message to the shop inbox. Returns False when mail
    could not be sent; the message itself is already stored.
    """
    recipient = _options().get("CONTACT_RECIPIENT")
    if not recipient:
        logger.warning("CONTACT_RECIPIENT is not configured; contact #%s not mailed.", contact.pk)
        return False

    html = render_to_string("emails/contact_mail.html", {"contact": contact})
    try:
        send_mail(
            subject=contact.subject or f"New contact message from {contact.name}",
            message=strip_tags(html),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
            html_message=html,
        )
    except Exception:
        logger.exception("Failed mailing contact #%s", contact.pk)
        return False
    return True


# -----------------------
# Contacts
# -----------------------

class ContactMailAPIView(APIView):
    """Public contact form."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = ContactSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            contact = Contact.objects.create(**serializer.validated_data)
        except Exception:
            logger.exception("StoreContact failed")
            return error_response("Failed to send message", status.HTTP_500_INTERNAL_SERVER_ERROR)

        mailed = send_contact_mail(contact)
        data = _serialize_contact(contact)
        data["mailed"] = mailed
        return success_response("Message sent successfully", data, status.HTTP_201_CREATED)


class ContactListAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = {"GET": "manage-contacts"}

    def get(self, request):
        contacts, pagination = paginate(Contact.objects.all(), request)
        return success_response("Contacts retrieved successfully", {
            "data": [_serialize_contact(c) for c in contacts],
            "pagination": pagination,
        })


class ContactDetailAPIView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capabilities = {"GET": "manage-contacts", "DELETE": "manage-contacts"}

    def get(self, request, pk):
        contact = Contact.objects.filter(pk=pk).first()
        if contact is None:
            return not_found_response("Contact not found")
        return success_response("Contact retrieved successfully", _serialize_contact(contact))

    def delete(self, request, pk):
        contact = Contact.objects.filter(pk=pk).first()
        if contact is None:
            return not_found_response("Contact not found")
        contact.delete()
        return success_response("Contact deleted successfully")


# -----------------------
# Subscribers
# -----------------------

class SubscriberAPIView(APIView):
    required_capabilities = {"GET": "view-subscribers"}

    def get_permissions(self):
        if self.request.method == "POST":
            return [AllowAny()]
        return [IsAuthenticated(), HasCapability()]

    def get(self, request):
        User = get_user_model()
        users = User.objects.filter(is_active=True).order_by("-id")
        subscribers = Subscriber.objects.order_by("-id")
        return success_response("Subscribers retrieved successfully", {
            "users": [
                {"id": u.id, "name": u.name, "email": u.email, "created_at": format_datetime(u.created_at)}
                for u in users
            ],
            "subscribers": [
                {"id": s.id, "email": s.email, "created_at": format_datetime(s.created_at)}
                for s in subscribers
            ],
        })

    def post(self, request):
        serializer = SubscriberSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        subscriber = Subscriber.objects.create(email=serializer.validated_data["email"])
        logger.info("New subscriber %s.", subscriber.email)
        return success_response(
            "Subscribed successfully",
            {"id": subscriber.id, "email": subscriber.email, "created_at": format_datetime(subscriber.created_at)},
            status.HTTP_201_CREATED,
        )
