"""Example ABAC policies covering time, department, document state and location."""


def _cond(source: str, key: str, operator: str, value) -> dict:
    return {"attribute": {"source": source, "key": key}, "operator": operator, "value": value}


BUSINESS_HOURS = {
    "name": "Business Hours Access",
    "description": "Allow access only during business hours (9 AM - 5 PM)",
    "version": "1.0.0",
    "enabled": True,
    "tags": ["time-based", "example"],
    "rules": [
        {
            "id": "business-hours-rule",
            "description": "Current hour is within business hours",
            "effect": "allow",
            "priority": 10,
            "conditions": {
                "operator": "and",
                "conditions": [
                    _cond("environment", "hour", "gte", 9),
                    _cond("environment", "hour", "lt", 17),
                ],
            },
        }
    ],
}

DEPARTMENT_ACCESS = {
    "name": "Department Access Control",
    "description": "Allow access based on user department",
    "version": "1.0.0",
    "enabled": True,
    "tags": ["department", "example"],
    "rules": [
        {
            "id": "hr-department-rule",
            "description": "HR department can access employee records",
            "effect": "allow",
            "priority": 20,
            "conditions": {
                "operator": "and",
                "conditions": [
                    _cond("user", "department", "eq", "HR"),
                    _cond("action", "value", "in", ["read", "update", "create"]),
                    _cond("resource", "type", "eq", "employee"),
                ],
            },
        }
    ],
}

DRAFT_DOCUMENTS = {
    "name": "Draft Document Access",
    "description": "Only document owners can edit draft documents",
    "version": "1.0.0",
    "enabled": True,
    "tags": ["ownership", "state-based", "example"],
    "rules": [
        {
            "id": "draft-owner-edit-rule",
            "description": "Owners can edit draft documents",
            "effect": "allow",
            "priority": 30,
            "conditions": {
                "operator": "and",
                "conditions": [
                    _cond("resource", "status", "eq", "draft"),
                    _cond("resource", "ownerId", "eq", "${user.id}"),
                    _cond("action", "value", "eq", "update"),
                ],
            },
        },
        {
            "id": "published-no-edit-rule",
            "description": "Published documents cannot be edited",
            "effect": "deny",
            "priority": 50,
            "conditions": {
                "operator": "and",
                "conditions": [
                    _cond("resource", "status", "eq", "published"),
                    _cond("action", "value", "in", ["update", "delete"]),
                ],
            },
        },
    ],
}

GEOGRAPHIC_ACCESS = {
    "name": "Geographic Access Control",
    "description": "Restrict access based on user location",
    "version": "1.0.0",
    "enabled": True,
    "tags": ["location", "example"],
    "rules": [
        {
            "id": "us-only-access-rule",
            "description": "Allow access only from US locations",
            "effect": "allow",
            "priority": 15,
            "conditions": {
                "operator": "and",
                "conditions": [_cond("environment", "country", "in", ["US", "USA", "United States"])],
            },
        },
        {
            "id": "sensitive-action-location-rule",
            "description": "Deny sensitive actions from outside the private network",
            "effect": "deny",
            "priority": 40,
            "conditions": {
                "operator": "and",
                "conditions": [
                    _cond("action", "value", "in", ["delete", "export"]),
                    {
                        "operator": "not",
                        "conditions": [
                            _cond(
                                "environment",
                                "ipAddress",
                                "matches",
                                r"^(10\.|192\.168\.|172\.(1[6-9]|2[0-9]|3[0-1])\.)",
                            )
                        ],
                    },
                ],
            },
        },
    ],
}

EXAMPLE_POLICIES = [BUSINESS_HOURS, DEPARTMENT_ACCESS, DRAFT_DOCUMENTS, GEOGRAPHIC_ACCESS]

__all__ = ["EXAMPLE_POLICIES"]
