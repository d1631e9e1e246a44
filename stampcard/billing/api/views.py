"""
Billing API views.

Endpoints in this module:
- PlanListView / PlanFeaturesView: the plan catalog
- AccessView: access decision for the signed-in user
- TrialSignupView: start a trial with no payment
- AdminSessionView: open or close the super-admin session
- AdminStatsView / AdminSubscriptionListView: super-admin dashboard data
- ExpireSubscriptionsView: scheduled expiry sweep (worker only)
"""

from __future__ import annotations

import logging
from io import StringIO

from django.conf import settings
from django.core.management import call_command
from django.http import Http404
from rest_framework import permissions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from stampcard.billing.access import AccessEvaluator
from stampcard.billing.api.permissions import HasAdminSession
from stampcard.billing.api.serializers import SubscriptionSerializer
from stampcard.billing.api.serializers import serialize_plan_catalog
from stampcard.billing.exceptions import InvalidPlanKind
from stampcard.billing.exceptions import StoreUnavailable
from stampcard.billing.plans import features_for
from stampcard.billing.plans import parse_plan_kind
from stampcard.billing.reconciler import SubscriptionReconciler
from stampcard.billing.sessions import AdminSession
from stampcard.billing.stats import recent_subscriptions
from stampcard.billing.stats import subscription_statistics

logger = logging.getLogger(__name__)

MAX_RECENT_SUBSCRIPTIONS = 500


class PlanListView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response({"plans": serialize_plan_catalog()})


class PlanFeaturesView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, plan: str):
        try:
            plan_kind = parse_plan_kind(plan)
        except InvalidPlanKind as exc:
            raise Http404(str(exc)) from exc
        return Response(
            {
                "plan": str(plan_kind),
                "features": features_for(plan_kind).as_dict(),
            },
        )


class AccessView(APIView):
    """
    Access decision for the current user.

    Never fails because of the subscription store; see access.py for the
    fail-open policy.
    """

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        decision = AccessEvaluator().evaluate(str(request.user.pk))
        return Response(decision.as_dict())


class TrialSignupView(APIView):
    """
    Start a trial for the current user. Users with any subscription history
    get their existing subscription back instead.
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        try:
            subscription = SubscriptionReconciler().start_trial(str(request.user.pk))
        except StoreUnavailable:
            logger.exception("Trial signup failed for user=%s", request.user.pk)
            return Response(
                {"detail": "Subscription store unavailable, try again."},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return Response(SubscriptionSerializer(subscription).data)


class AdminSessionView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        session = AdminSession.start(request)
        return Response(session.as_dict(), status=status.HTTP_201_CREATED)

    def delete(self, request):
        AdminSession.invalidate(request)
        return Response(status=status.HTTP_204_NO_CONTENT)


class AdminStatsView(APIView):
    permission_classes = [HasAdminSession]

    def get(self, request):
        return Response(subscription_statistics().as_dict())


class AdminSubscriptionListView(APIView):
    """
    Most recent subscriptions, newest first.

    Query params:
        limit: number of rows (default 100, capped at MAX_RECENT_SUBSCRIPTIONS)
    """

    permission_classes = [HasAdminSession]

    def get(self, request):
        try:
            limit = int(request.query_params.get("limit", 100))
        except ValueError:
            return Response(
                {"detail": "limit must be an integer."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        limit = max(1, min(limit, MAX_RECENT_SUBSCRIPTIONS))
        serializer = SubscriptionSerializer(recent_subscriptions(limit), many=True)
        return Response({"results": serializer.data})


class ExpireSubscriptionsView(APIView):
    """
    Run the expire_subscriptions command.

    Authentication happens in front of the worker (platform IAM), so DRF
    auth is disabled and the view only answers on worker instances.

    URL: POST /api/v1/billing/scheduled/expire-subscriptions/
    Recommended schedule: Hourly
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if not getattr(settings, "APP_IS_WORKER", False):
            raise Http404

        logger.info("Starting scheduled subscription expiry")
        out = StringIO()
        try:
            call_command("expire_subscriptions", stdout=out)
        except Exception as e:
            logger.exception("Failed to expire subscriptions")
            return Response(
                {
                    "task": "expire_subscriptions",
                    "status": "failed",
                    "error": str(e),
                },
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        output = out.getvalue().strip()
        logger.info("Subscription expiry completed: %s", output)
        return Response(
            {
                "task": "expire_subscriptions",
                "status": "completed",
                "output": output,
            },
            status=status.HTTP_200_OK,
        )
