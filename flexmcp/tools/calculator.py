# Purpose: Arithmetic tools (add, calculate).
# Relationships: Registered by main.build_registry(); no configuration needed.

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .registry import ToolDefinition, ToolMetadata


class AddParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    a: float = Field(description="First number")
    b: float = Field(description="Second number")


class CalculateParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    operation: Literal["add", "subtract", "multiply", "divide"] = Field(
        description="The arithmetic operation to perform"
    )
    a: float = Field(description="First number")
    b: float = Field(description="Second number")


class CalculationResult(BaseModel):
    result: int | float


def _number(value: float) -> float | int:
    # 2.0 + 3.0 reads better as 5.
    return int(value) if value.is_integer() else value


def make_add_tool() -> ToolDefinition:
    def handler(params: dict, config: dict) -> dict:
        return CalculationResult(result=_number(params["a"] + params["b"])).model_dump()

    return ToolDefinition(
        name="add",
        description="Add two numbers together",
        params_model=AddParams,
        handler=handler,
        metadata=ToolMetadata(
            category="math",
            tags=["arithmetic", "basic"],
            version="1.0.0",
            cacheable=True,
            estimated_duration_ms=5,
        ),
    )


def make_calculate_tool() -> ToolDefinition:
    operations = {
        "add": lambda a, b: a + b,
        "subtract": lambda a, b: a - b,
        "multiply": lambda a, b: a * b,
        "divide": lambda a, b: a / b,
    }

    def handler(params: dict, config: dict) -> dict:
        operation, a, b = params["operation"], params["a"], params["b"]
        if operation == "divide" and b == 0:
            return {"error": "Cannot divide by zero"}
        return CalculationResult(result=_number(operations[operation](a, b))).model_dump()

    return ToolDefinition(
        name="calculate",
        description="Perform arithmetic operations on two numbers",
        params_model=CalculateParams,
        handler=handler,
        metadata=ToolMetadata(
            category="math",
            tags=["arithmetic", "advanced"],
            version="1.0.0",
            cacheable=True,
            estimated_duration_ms=10,
        ),
    )
