"""
JSON schemas for exchanging fitted models with an external estimator.

Unbounded limits are written as null.
"""

import numpy as np
from pydantic import BaseModel, Field, model_validator

from drf_analysis.core.data_models import ResponseMatrix
from drf_analysis.irt.items import AnyItem, GroupParameters
from drf_analysis.irt.model import GroupStructure, MultipleGroupModel


class GroupSchema(BaseModel):
    name: str
    items: list[AnyItem] = Field(min_length=1)
    group_parameters: GroupParameters
    responses: list[list[int]] | None = None


class MultipleGroupModelSchema(BaseModel):
    groups: list[GroupSchema] = Field(min_length=1)
    item_names: list[str] | None = None
    estimated: list[bool] | None = None
    lbound: list[float | None] | None = None
    ubound: list[float | None] | None = None
    constraints: list[list[int]] = []
    vcov: list[list[float]] | None = None
    second_order_test: bool = True
    item_mins: list[int] | None = None
    quadpts: int | None = Field(default=None, ge=2)

    @model_validator(mode="after")
    def validate_responses(self) -> "MultipleGroupModelSchema":
        given = [g.responses is not None for g in self.groups]
        if any(given) and not all(given):
            raise ValueError(
                "responses must be given for every group or for none"
            )
        return self

    def to_domain(self) -> MultipleGroupModel:
        groups = [
            GroupStructure(
                items=tuple(g.items), group_parameters=g.group_parameters
            )
            for g in self.groups
        ]

        responses: list[ResponseMatrix] | None = None
        if all(g.responses is not None for g in self.groups):
            n_categories = tuple(item.n_categories for item in groups[0].items)
            responses = [
                ResponseMatrix(
                    responses=np.array(g.responses, dtype=np.int8).reshape(
                        -1, len(n_categories)
                    ),
                    n_categories=n_categories,
                )
                for g in self.groups
            ]

        return MultipleGroupModel.create(
            groups,
            group_names=[g.name for g in self.groups],
            item_names=self.item_names,
            estimated=None
            if self.estimated is None
            else np.array(self.estimated, dtype=np.bool_),
            lbound=_bounds_to_array(self.lbound, -np.inf),
            ubound=_bounds_to_array(self.ubound, np.inf),
            constraints=self.constraints,
            vcov=None if self.vcov is None else np.array(self.vcov),
            second_order_test=self.second_order_test,
            responses=responses,
            item_mins=None
            if self.item_mins is None
            else np.array(self.item_mins, dtype=np.int_),
            quadpts=self.quadpts,
        )

    @classmethod
    def from_domain(cls, model: MultipleGroupModel) -> "MultipleGroupModelSchema":
        groups = []
        for g, (name, structure) in enumerate(
            zip(model.group_names, model.groups, strict=True)
        ):
            groups.append(
                GroupSchema(
                    name=name,
                    items=list(structure.items),
                    group_parameters=structure.group_parameters,
                    responses=None
                    if model.responses is None
                    else model.responses[g].responses.tolist(),
                )
            )
        return cls(
            groups=groups,
            item_names=list(model.item_names),
            estimated=model.estimated.tolist(),
            lbound=_bounds_to_list(model.lbound),
            ubound=_bounds_to_list(model.ubound),
            constraints=[list(c) for c in model.constraints],
            vcov=None if model.vcov is None else model.vcov.tolist(),
            second_order_test=model.second_order_test,
            item_mins=model.item_mins.tolist(),
            quadpts=model.quadpts,
        )


def _bounds_to_array(
    values: list[float | None] | None, fill: float
) -> np.ndarray | None:
    if values is None:
        return None
    return np.array([fill if v is None else v for v in values], dtype=np.float64)


def _bounds_to_list(values: np.ndarray) -> list[float | None]:
    return [float(v) if np.isfinite(v) else None for v in values]
