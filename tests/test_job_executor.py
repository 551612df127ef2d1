"""Test the background job runner."""
import asyncio

from execution.job_executor import BackgroundJobRunner, describe_error


def test_failures_are_recorded_not_raised():
    recorded = []
    runner = BackgroundJobRunner(lambda job_id, message: recorded.append((job_id, message)))

    async def broken():
        raise RuntimeError("captions unavailable")

    async def main():
        runner.submit("job-1", broken)
        assert runner.is_running("job-1")
        await runner.wait()

    asyncio.run(main())

    assert recorded == [("job-1", "captions unavailable")]
    assert not runner.is_running("job-1")


def test_successful_job_records_nothing():
    recorded, done = [], []
    runner = BackgroundJobRunner(lambda job_id, message: recorded.append(job_id))

    async def ok():
        await asyncio.sleep(0)
        done.append(True)

    async def main():
        runner.submit("job-1", ok)
        await runner.wait("job-1")

    asyncio.run(main())

    assert done == [True]
    assert recorded == []


def test_recorder_errors_do_not_escape():
    def recorder(job_id, message):
        raise OSError("database locked")

    runner = BackgroundJobRunner(recorder)

    async def broken():
        raise ValueError()

    async def main():
        runner.submit("job-1", broken)
        await runner.wait()

    asyncio.run(main())


def test_describe_error_falls_back_to_type():
    assert describe_error(ValueError()) == "ValueError"
    assert describe_error(ValueError("bad")) == "bad"
