"""Product actions invoked for a resolved intent.

The product backends here are in-process mocks with a simulated latency; each
handler takes the extracted intent parameters and returns a payload dict.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from assistant.logging_config import get_logger
from assistant.services.result import ApiCallResult

logger = get_logger("action_service")

Handler = Callable[[dict], dict]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _short_id(length: int) -> str:
    return uuid.uuid4().hex[:length].upper()


# Artemis: user management and access control


def _artemis_user(params: dict) -> dict:
    return {
        "userId": params.get("userId", "USR-00123"),
        "displayName": "Jane Smith",
        "email": "jane.smith@example.com",
        "status": "INACTIVE",
        "lastLogin": "2024-11-10T08:34:00Z",
        "roles": ["VIEWER"],
        "accountNotes": "Auto-deactivated after 90 days of inactivity.",
    }


def _artemis_business(params: dict) -> dict:
    return {
        "userId": params.get("userId", "USR-00123"),
        "assignedBusinesses": [],
        "missingRole": "BUSINESS_VIEWER",
        "message": "User has no BUSINESS_VIEWER or BUSINESS_ADMIN role assigned.",
    }


def _artemis_ticket_create(params: dict) -> dict:
    return {
        "ticketId": f"TKT-{_short_id(8)}",
        "title": params.get("title", "Support Request"),
        "priority": params.get("priority", "MEDIUM"),
        "status": "OPEN",
        "assignedTo": "on-call-queue",
        "createdAt": _now_iso(),
    }


def _artemis_view_ticket(params: dict) -> dict:
    return {
        "ticketId": params.get("ticketId", "TKT-UNKNOWN"),
        "title": "Unable to Access Artemis",
        "status": "IN_PROGRESS",
        "priority": "HIGH",
        "assignedTo": "L2-Support",
        "createdAt": "2025-02-15T10:00:00Z",
        "comments": [
            "L1: Escalated to L2, account status issue.",
            "L2: Investigating LDAP sync problem.",
        ],
    }


def _artemis_update_user(params: dict) -> dict:
    return {
        "userId": params.get("userId", "USR-00123"),
        "previousStatus": "INACTIVE",
        "newStatus": params.get("status", "ACTIVE"),
        "updatedAt": _now_iso(),
        "notificationSent": True,
    }


def _artemis_app_crash(params: dict) -> dict:
    return {
        "recentCrashes": [
            {
                "crashId": "CRS-0091",
                "module": "AuthModule",
                "timestamp": "2025-02-19T23:45:00Z",
                "summary": "NullPointerException in TokenRefreshHandler",
                "affectedUsers": 14,
            },
            {
                "crashId": "CRS-0090",
                "module": "ReportingModule",
                "timestamp": "2025-02-19T18:12:00Z",
                "summary": "Connection timeout to reporting-db",
                "affectedUsers": 3,
            },
        ],
        "totalCrashesLast24h": 2,
        "escalationChannel": "#artemis-platform",
    }


# B360: business intelligence and reporting


def _b360_auth(params: dict) -> dict:
    return {
        "userId": params.get("userId", "USR-B360-001"),
        "authStatus": "FAILED",
        "reason": "Password expired - last changed 95 days ago",
        "failedAttempts": 3,
        "lockoutStatus": "NOT_LOCKED",
        "ssoEnabled": True,
        "lastSuccessfulLogin": "2025-02-01T14:30:00Z",
    }


def _b360_report(params: dict) -> dict:
    return {
        "reportId": params.get("reportId", f"RPT-{_short_id(6)}"),
        "status": "FAILED",
        "error": "Data source 'sales_db' connection timeout after 30s",
        "rowCount": 0,
        "startTime": "2025-02-23T09:00:00Z",
        "duration": "30s",
        "retryable": True,
    }


def _b360_sync(params: dict) -> dict:
    return {
        "lastSyncTime": "2025-02-23T04:00:00Z",
        "syncStatus": "PARTIAL_FAILURE",
        "failedSources": ["inventory_db", "crm_api"],
        "successfulSources": ["hr_system", "finance_db"],
        "nextScheduledSync": "2025-02-23T08:00:00Z",
        "manualSyncAvailable": True,
    }


def _b360_dashboard(params: dict) -> dict:
    return {
        "dashboardId": params.get("dashboardId", "DASH-001"),
        "status": "SLOW_LOADING",
        "widgetCount": 25,
        "recommendedMax": 20,
        "slowestWidget": "sales-trend-chart",
        "avgLoadTime": "8.5s",
        "performanceScore": 45,
    }


def _b360_permissions(params: dict) -> dict:
    return {
        "userId": params.get("userId", "USR-B360-001"),
        "currentRoles": ["VIEWER"],
        "requestedResource": "executive-dashboard",
        "requiredRole": "ANALYST",
        "accessDenied": True,
        "adminContact": "b360-admin@company.com",
    }


def _b360_ticket_create(params: dict) -> dict:
    return {
        "ticketId": f"B360-TKT-{_short_id(6)}",
        "title": params.get("title", "B360 Support Request"),
        "priority": params.get("priority", "MEDIUM"),
        "status": "OPEN",
        "queue": "b360-support-queue",
        "createdAt": _now_iso(),
    }


# Velocity: CI/CD and deployment automation


def _velocity_build(params: dict) -> dict:
    build_id = params.get("buildId", f"BUILD-{_short_id(6)}")
    return {
        "buildId": build_id,
        "status": "FAILED",
        "failureReason": "Test suite 'integration-tests' failed: 3 tests failed",
        "stage": "test",
        "duration": "4m 32s",
        "artifacts": [],
        "logs": f"https://velocity.internal/builds/{build_id}/logs",
    }


def _velocity_deployment(params: dict) -> dict:
    return {
        "deploymentId": params.get("deploymentId", f"DEPLOY-{_short_id(6)}"),
        "status": "STUCK",
        "currentStage": "approval-gate",
        "waitingFor": "production-approvers",
        "waitingTime": "2h 15m",
        "targetEnvironment": "production",
        "canForce": False,
    }


def _velocity_pipeline(params: dict) -> dict:
    return {
        "pipelineId": params.get("pipelineId", "PIPE-001"),
        "status": "ERROR",
        "errorType": "YAML_PARSE_ERROR",
        "errorMessage": "Line 45: Invalid stage reference 'deploy-prod' - stage not defined",
        "configFile": "velocity.yml",
        "lastSuccessfulRun": "2025-02-20T16:00:00Z",
    }


def _velocity_environment(params: dict) -> dict:
    return {
        "environment": params.get("environment", "staging"),
        "status": "MISCONFIGURED",
        "missingVariables": ["DATABASE_URL", "API_SECRET"],
        "expiredSecrets": ["AWS_ACCESS_KEY"],
        "lastUpdated": "2025-02-10T12:00:00Z",
        "updatedBy": "devops-bot",
    }


def _velocity_agent(params: dict) -> dict:
    return {
        "agentId": params.get("agentId", "AGENT-001"),
        "status": "OFFLINE",
        "lastHeartbeat": "2025-02-23T06:45:00Z",
        "offlineDuration": "3h 15m",
        "agentType": "self-hosted",
        "os": "Ubuntu 22.04",
        "recommendedAction": "Regenerate agent token and restart agent service",
    }


def _velocity_ticket_create(params: dict) -> dict:
    return {
        "ticketId": f"VEL-TKT-{_short_id(6)}",
        "title": params.get("title", "Velocity Support Request"),
        "priority": params.get("priority", "MEDIUM"),
        "status": "OPEN",
        "queue": "velocity-devops-queue",
        "createdAt": _now_iso(),
    }


MOCK_HANDLERS: dict[str, dict[str, Handler]] = {
    "artemis": {
        "user": _artemis_user,
        "business": _artemis_business,
        "ticketcreate": _artemis_ticket_create,
        "viewticket": _artemis_view_ticket,
        "updateuser": _artemis_update_user,
        "appcrash": _artemis_app_crash,
    },
    "b360": {
        "auth": _b360_auth,
        "report": _b360_report,
        "sync": _b360_sync,
        "dashboard": _b360_dashboard,
        "permissions": _b360_permissions,
        "ticketcreate": _b360_ticket_create,
    },
    "velocity": {
        "build": _velocity_build,
        "deployment": _velocity_deployment,
        "pipeline": _velocity_pipeline,
        "environment": _velocity_environment,
        "agent": _velocity_agent,
        "ticketcreate": _velocity_ticket_create,
    },
}

PRODUCT_LABELS = {"artemis": "Artemis", "b360": "B360", "velocity": "Velocity"}


class ActionGateway:
    def __init__(
        self,
        handlers: Optional[dict[str, dict[str, Handler]]] = None,
        delay_ms: int = 50,
        delay_overrides: Optional[dict[str, int]] = None,
        sleep=time.sleep,
    ):
        self.handlers = MOCK_HANDLERS if handlers is None else handlers
        self.delay_ms = delay_ms
        self.delay_overrides = delay_overrides or {}
        self._sleep = sleep

    def invoke(self, route_id: str, action_name: str, params: Optional[dict] = None) -> ApiCallResult:
        """Run one action. Failures come back as ApiCallResult(success=False), never raised."""
        params = params or {}
        product_handlers = self.handlers.get((route_id or "").lower())
        if product_handlers is None:
            return ApiCallResult.failed(action_name, f"Unknown product: '{route_id}'")

        handler = product_handlers.get((action_name or "").lower())
        if handler is None:
            label = PRODUCT_LABELS.get(route_id.lower(), route_id)
            return ApiCallResult.failed(action_name, f"Unknown {label} API: '{action_name}'")

        delay_ms = self.delay_overrides.get(route_id, self.delay_ms)
        if delay_ms > 0:
            self._sleep(delay_ms / 1000)

        try:
            payload = handler(params)
        except Exception as e:
            logger.warning(f"Action {route_id}.{action_name} failed: {e}")
            return ApiCallResult.failed(action_name, str(e))
        return ApiCallResult.ok(action_name, payload)

    def invoke_all(self, route_id: str, action_names: list[str], params: Optional[dict] = None) -> list[ApiCallResult]:
        results = [self.invoke(route_id, name, params) for name in action_names]
        logger.info(
            f"Actions complete for product={route_id}",
            extra={"context": {"actions": {r.source: r.success for r in results}}},
        )
        return results
