"""
routes_compile
把 collection 编译到内存文件系统，直接返回生成的文件内容（不落盘）
"""
from fastapi import APIRouter, HTTPException

from postmortem.errors import EmissionError, InvalidEnvironmentError, StructuralError
from postmortem.models.compile_schemas import (
    CompileCollectionRequest,
    CompileCollectionResponse,
    GeneratedFile,
)
from postmortem.services.compile.driver import compile_collection
from postmortem.services.storage.filesystem import InMemoryFileSystem

router = APIRouter()

# 内存输出根目录；返回的 path 相对于它
OUTPUT_ROOT = "out"


@router.post("/compile", response_model=CompileCollectionResponse)
def compile_postman_collection(req: CompileCollectionRequest) -> CompileCollectionResponse:
    fs = InMemoryFileSystem()
    try:
        result = compile_collection(
            req.collection,
            OUTPUT_ROOT,
            req.environment,
            options=req.options,
            fs=fs,
        )
    except (StructuralError, InvalidEnvironmentError) as e:
        raise HTTPException(status_code=422, detail={
            "message": str(e),
            "errors": e.errors,
            "warnings": e.warnings,
        })
    except EmissionError as e:
        raise HTTPException(status_code=500, detail={"message": str(e), "path": e.path})

    prefix = f"{OUTPUT_ROOT}/"
    outputs = [
        GeneratedFile(path=path.removeprefix(prefix), content=content)
        for path, content in fs.files.items()
    ]
    return CompileCollectionResponse(
        ok=True,
        files=result.files,
        folders=result.folders,
        base_url=result.base_url,
        environment=result.environment,
        warnings=result.warnings,
        fallbacks=result.fallbacks,
        outputs=outputs,
    )
