from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


# --- Stage Configuration ---
class HessenbergConfig(BaseModel):
    begin: int = Field(default=0, ge=0, description="First column to be reduced.")
    end: Optional[int] = Field(default=None, ge=0, description="One past the last column to be reduced.")

    @model_validator(mode='after')
    def check_column_range(self):
        if self.end is not None and self.end < self.begin:
            raise ValueError("'end' must not be smaller than 'begin'.")
        return self


class SchurConfig(BaseModel):
    # Iteration budget per active window is iteration_limit_factor * max(10, n)
    iteration_limit_factor: int = Field(default=30, ge=1)
    exceptional_shift_period: int = Field(default=10, ge=1)


class ReorderConfig(BaseModel):
    separation_limit: float = Field(
        default=1e10,
        gt=0.0,
        description="Reject a swap when the norm of the coupling solution X of T11 X - X T22 = T12 exceeds this.",
    )
    stability_factor: float = Field(
        default=100.0,
        gt=0.0,
        description="Multiple of eps * ||D||_F tolerated as backward error of a local swap.",
    )


class EigenvectorsConfig(BaseModel):
    normalization: Literal['2', 'inf'] = '2'


class SelectionConfig(BaseModel):
    rule: Literal[
        'none', 'real_below', 'real_above', 'magnitude_below', 'magnitude_above', 'real'
    ] = 'none'
    threshold: float = 0.0


# --- Other Sections ---
class InputConfig(BaseModel):
    matrix_file: str


class OutputConfig(BaseModel):
    results_filename: str = 'schur_results.npz'


class PlottingConfig(BaseModel):
    save_plot: bool = True
    show_plot: bool = False
    spectrum_plot_filename: str = 'spectrum.png'
    spectrum_title: str = "Spectrum"

    model_config = ConfigDict(extra='allow')


class TasksConfig(BaseModel):
    reorder: bool = True
    compute_eigenvectors: bool = True
    plot_spectrum: bool = False


# --- Main Configuration ---
class PipelineConfig(BaseModel):
    input: InputConfig
    hessenberg: HessenbergConfig = Field(default_factory=HessenbergConfig)
    schur: SchurConfig = Field(default_factory=SchurConfig)
    reorder: ReorderConfig = Field(default_factory=ReorderConfig)
    eigenvectors: EigenvectorsConfig = Field(default_factory=EigenvectorsConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    plotting: PlottingConfig = Field(default_factory=PlottingConfig)
    tasks: TasksConfig = Field(default_factory=TasksConfig)

    model_config = ConfigDict(extra='forbid')

    @model_validator(mode='before')
    def normalize_input(cls, values):
        # Accept the short form 'matrix_file: path' at the top level
        if isinstance(values, dict) and 'matrix_file' in values and 'input' not in values:
            values = dict(values)
            values['input'] = {'matrix_file': values.pop('matrix_file')}
        return values
